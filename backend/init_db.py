"""
Database initialization script
Run this to create tables and seed a demo survey:

    python init_db.py                 create tables + seed
    python init_db.py repair <org>    re-derive all aggregates of an organization
"""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent))

from npscore.core.config import get_settings
from npscore.core.database import Base, create_engine_from_settings, create_session_factory
from npscore.models import DistributionCampaign, Question, QuestionType, Survey, SurveyStatus
from npscore.repositories.sqlalchemy_store import SqlAlchemyStore
from npscore.services.core import NpsCore

DEMO_ORGANIZATION_ID = "00000000-0000-0000-0000-000000000001"
DEMO_SHARE_CODE = "demo-nps"


def init_db(engine):
    """Initialize database with tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Tables created successfully")


def seed_data(session_factory):
    """Seed a demo survey with an NPS question and an email campaign"""
    db = session_factory()

    try:
        print("\nSeeding initial data...")

        survey = db.query(Survey).filter(Survey.share_code == DEMO_SHARE_CODE).first()
        if not survey:
            survey = Survey(
                organization_id=DEMO_ORGANIZATION_ID,
                title="How are we doing?",
                status=SurveyStatus.ACTIVE.value,
                share_code=DEMO_SHARE_CODE,
            )
            db.add(survey)
            db.flush()

            db.add_all([
                Question(
                    survey_id=survey.id,
                    type=QuestionType.NPS.value,
                    title="How likely are you to recommend us to a friend or colleague?",
                    order=0,
                ),
                Question(
                    survey_id=survey.id,
                    type=QuestionType.TEXTAREA.value,
                    title="What is the main reason for your score?",
                    order=1,
                ),
            ])
            print(f"✓ Demo survey created (share code: {DEMO_SHARE_CODE})")

            db.add(DistributionCampaign(
                organization_id=DEMO_ORGANIZATION_ID,
                survey_id=survey.id,
                name="Quarterly email",
                type="email",
            ))
            print("✓ Demo email campaign created")

        db.commit()
        print("\n✓ Database seeded successfully!")
        print(f"\nOrganization id: {DEMO_ORGANIZATION_ID}")
        print(f"Survey id:       {survey.id}")

    except Exception as e:
        print(f"\n✗ Error seeding database: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def repair(session_factory, organization_id):
    core = NpsCore(SqlAlchemyStore(session_factory))
    summary = core.repair_aggregates(organization_id)
    print(f"✓ Recomputed {summary.surveys_recomputed} surveys and {summary.customers_recomputed} customers")


if __name__ == "__main__":
    settings = get_settings()
    engine = create_engine_from_settings(settings)
    session_factory = create_session_factory(engine)

    if len(sys.argv) == 3 and sys.argv[1] == "repair":
        repair(session_factory, sys.argv[2])
        sys.exit(0)

    print("=" * 50)
    print("NPS Core - Database Initialization")
    print("=" * 50)

    init_db(engine)
    seed_data(session_factory)

    print("\n" + "=" * 50)
    print("Setup complete!")
    print("=" * 50)
