"""Schema-driven CRUD for versioned form records (surveys, installations)."""
from flask import jsonify, request, g
from pydantic import ValidationError as PydanticValidationError
from typing import Optional, List
from shared.enums import ChangeAction
from shared.validation import ValidationError
from ..models import db, record_change
from ..utils import parse_if_match
from .crud_base import CRUDBase, pydantic_errors_to_validation_error


class GenericCRUD(CRUDBase):
    """CRUD class driven by Pydantic schemas, with optimistic version checks.

    Usage:
        crud = GenericCRUD(
            model=SiteSurvey,
            create_schema=SurveyRecordCreate,
            update_schema=SurveyRecordUpdate,
            response_schema=SurveyRecordResponse,
            owner_column='user_id',
            plural_name='surveys',
        )

    Updates honour an optional ``If-Match`` header carrying the version the
    client last saw; a mismatch is answered with 409 and the current
    version. Without the header the write is last-writer-wins. Every
    successful update bumps ``version``.
    """

    def __init__(
        self,
        model: type,
        create_schema: type,
        update_schema: type,
        response_schema: type,
        owner_column: Optional[str] = None,
        plural_name: Optional[str] = None,
        filter_args: Optional[List[str]] = None,
        logger_name: Optional[str] = None,
    ):
        super().__init__(model, logger_name=logger_name or model.__tablename__)
        self.create_schema = create_schema
        self.update_schema = update_schema
        self.response_schema = response_schema
        self.owner_column = owner_column
        self.plural_name = plural_name
        if filter_args is not None:
            self.filter_args = filter_args

    def serialize(self, resource):
        return self.response_schema.model_validate(resource).model_dump(mode='json')

    def validate_create_data(self, data):
        try:
            validated = self.create_schema(**data).model_dump()
        except PydanticValidationError as e:
            raise pydantic_errors_to_validation_error(e)
        user = getattr(g, 'user', None)
        if self.owner_column and user is not None:
            validated[self.owner_column] = user.id
        return validated

    def validate_update_data(self, data):
        try:
            return self.update_schema(**data).model_dump(exclude_unset=True)
        except PydanticValidationError as e:
            raise pydantic_errors_to_validation_error(e)

    def created_payload(self, resource):
        payload = super().created_payload(resource)
        payload['version'] = resource.version
        return payload

    def updated_payload(self, resource):
        payload = super().updated_payload(resource)
        payload['version'] = resource.version
        return payload

    def update(self, resource_id, validate_func=None):
        """Update a record, rejecting stale writes when ``If-Match`` is sent."""
        resource = self.model.query.get_or_404(resource_id)
        try:
            expected_version = parse_if_match(request.headers.get('If-Match'))
            if expected_version is not None and expected_version != resource.version:
                self.logger.warning(
                    f"Version conflict on {self.get_singular_name()} {resource_id}: "
                    f"client has {expected_version}, server has {resource.version}"
                )
                return jsonify({
                    'error': 'Record was modified by someone else',
                    'current_version': resource.version
                }), 409

            validated_data = self.validate_update_data(self.get_json_data())
            for key, value in validated_data.items():
                setattr(resource, key, value)
            resource.version = resource.version + 1

            record_change(self.model.__tablename__, resource.id, ChangeAction.UPDATE)
            db.session.commit()

            self.logger.info(f"Updated {self.get_singular_name()}: {resource_id} (version {resource.version})")
            return jsonify(self.updated_payload(resource))

        except ValidationError as e:
            self.logger.warning(f"Validation error in {self.get_singular_name()} update: {e}")
            db.session.rollback()
            return jsonify({'error': str(e)}), 400
        except Exception as e:
            self.logger.error(f"Failed to update {self.get_singular_name()}: {e}", exc_info=True)
            db.session.rollback()
            return jsonify({'error': f'Failed to update {self.get_singular_name()}'}), 500

    def get_plural_name(self):
        return self.plural_name or super().get_plural_name()


def register_crud_routes(bp, crud_instance, resource_name):
    """Register list/detail/create/update routes for a record blueprint.

    Records are never hard-deleted through the API, so no DELETE route.

    This function registers:
        GET /api/{resource_name} - List resources (equality filters from query args)
        GET /api/{resource_name}/<id> - Get single resource
        POST /api/{resource_name} - Create resource
        PUT /api/{resource_name}/<id> - Update resource
    """
    endpoint = resource_name.replace('-', '_')

    def get_list():
        page = request.args.get('page', 1, type=int)
        per_page = request.args.get('per_page', 50, type=int)
        return crud_instance.get_list(page=page, per_page=per_page, args=request.args)

    def get_detail(resource_id):
        return crud_instance.get_detail(resource_id)

    def create():
        return crud_instance.create()

    def update(resource_id):
        return crud_instance.update(resource_id)

    bp.add_url_rule(f'/{resource_name}', f'list_{endpoint}', get_list, methods=['GET'])
    bp.add_url_rule(f'/{resource_name}/<int:resource_id>', f'get_{endpoint}', get_detail, methods=['GET'])
    bp.add_url_rule(f'/{resource_name}', f'create_{endpoint}', create, methods=['POST'])
    bp.add_url_rule(f'/{resource_name}/<int:resource_id>', f'update_{endpoint}', update, methods=['PUT'])
