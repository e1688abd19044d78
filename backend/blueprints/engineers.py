"""Engineer profiles blueprint for Flask API."""
from flask import Blueprint, request, jsonify
from sqlalchemy import func
from pydantic import ValidationError as PydanticValidationError
from ..models import db, EngineerProfile, EngineerAllocation
from ..base.crud_base import CRUDBase, pydantic_errors_to_validation_error
from ..utils import validate_foreign_key
from .auth import admin_required
from shared.schemas import EngineerProfileBase, EngineerProfileUpdate, EngineerProfileResponse
from shared.validation import ValidationError
bp = Blueprint('engineers', __name__, url_prefix='/api')


def allocation_counts():
    """Map user_id to the number of allocations held."""
    rows = (db.session.query(EngineerAllocation.user_id, func.count(EngineerAllocation.id))
            .filter(EngineerAllocation.user_id.isnot(None))
            .group_by(EngineerAllocation.user_id)
            .all())
    return {user_id: count for user_id, count in rows}


class EngineerCRUD(CRUDBase):
    """CRUD operations for EngineerProfile model."""

    filter_args = ['status', 'user_id']

    def __init__(self):
        super().__init__(EngineerProfile, logger_name='engineers')
        self._counts = None

    def serialize(self, profile):
        result = EngineerProfileResponse.model_validate(profile).model_dump(mode='json')
        counts = self._counts if self._counts is not None else allocation_counts()
        result['allocated_sites'] = counts.get(profile.user_id, 0) if profile.user_id else 0
        return result

    def get_list(self, page=1, per_page=50, max_per_page=100, args=None):
        self._counts = allocation_counts()
        try:
            return super().get_list(page=page, per_page=per_page, max_per_page=max_per_page, args=args)
        finally:
            self._counts = None

    def validate_create_data(self, data):
        try:
            validated = EngineerProfileBase(**data).model_dump()
        except PydanticValidationError as e:
            raise pydantic_errors_to_validation_error(e)
        if not validate_foreign_key('users', 'id', validated.get('user_id')):
            raise ValidationError(f"user_id {validated['user_id']} does not exist")
        return validated

    def validate_update_data(self, data):
        try:
            return EngineerProfileUpdate(**data).model_dump(exclude_unset=True)
        except PydanticValidationError as e:
            raise pydantic_errors_to_validation_error(e)

    def get_plural_name(self):
        return 'engineers'


engineer_crud = EngineerCRUD()


@bp.route('/engineers', methods=['GET'])
def get_engineers():
    """List engineer profiles with their allocated-site counts."""
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 100, type=int)
    return engineer_crud.get_list(page=page, per_page=per_page, max_per_page=500, args=request.args)


@bp.route('/engineers/<int:engineer_id>', methods=['GET'])
def get_engineer(engineer_id):
    return engineer_crud.get_detail(engineer_id)


@bp.route('/engineers', methods=['POST'])
@admin_required
def create_engineer():
    return engineer_crud.create()


@bp.route('/engineers/<int:engineer_id>', methods=['PUT'])
@admin_required
def update_engineer(engineer_id):
    return engineer_crud.update(engineer_id)
