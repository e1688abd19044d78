"""Survey records blueprint for Flask API."""
from flask import Blueprint
from ..models import SiteSurvey
from ..base.generic_crud import GenericCRUD, register_crud_routes
from shared.schemas import SurveyRecordCreate, SurveyRecordUpdate, SurveyRecordResponse
bp = Blueprint('surveys', __name__, url_prefix='/api')

survey_crud = GenericCRUD(
    model=SiteSurvey,
    create_schema=SurveyRecordCreate,
    update_schema=SurveyRecordUpdate,
    response_schema=SurveyRecordResponse,
    owner_column='user_id',
    plural_name='surveys',
    filter_args=['status', 'site_id', 'user_id', 'region'],
    logger_name='surveys',
)

register_crud_routes(bp, survey_crud, 'surveys')
