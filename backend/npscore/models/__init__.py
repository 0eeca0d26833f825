from npscore.models.survey import Survey, Question, SurveyStatus, QuestionType
from npscore.models.customer import Customer, CustomerSegment
from npscore.models.campaign import DistributionCampaign, CampaignCounter
from npscore.models.response import SurveyResponse, Answer, ResponseStatus

__all__ = [
    "Survey",
    "Question",
    "SurveyStatus",
    "QuestionType",
    "Customer",
    "CustomerSegment",
    "DistributionCampaign",
    "CampaignCounter",
    "SurveyResponse",
    "Answer",
    "ResponseStatus",
]
