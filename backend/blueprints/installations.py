"""Installation records blueprint for Flask API."""
from flask import Blueprint
from ..models import SiteInstallation
from ..base.generic_crud import GenericCRUD, register_crud_routes
from shared.schemas import InstallationRecordCreate, InstallationRecordUpdate, InstallationRecordResponse
bp = Blueprint('installations', __name__, url_prefix='/api')

installation_crud = GenericCRUD(
    model=SiteInstallation,
    create_schema=InstallationRecordCreate,
    update_schema=InstallationRecordUpdate,
    response_schema=InstallationRecordResponse,
    owner_column='engineer_id',
    plural_name='installations',
    filter_args=['status', 'site_id', 'engineer_id'],
    logger_name='installations',
)

register_crud_routes(bp, installation_crud, 'installations')
