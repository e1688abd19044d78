"""Base CRUD class for Flask blueprints."""
from flask import jsonify, request
from typing import Type, Optional, Dict, Any, Callable, List
from sqlalchemy import Integer
from sqlalchemy.orm import DeclarativeBase
from pydantic import ValidationError as PydanticValidationError
from shared.validation import ValidationError
from shared.enums import ChangeAction
from ..models import db, record_change
import logging


def pydantic_errors_to_validation_error(exc: PydanticValidationError) -> ValidationError:
    """Flatten a pydantic error list into one ValidationError message."""
    errors = []
    for error in exc.errors():
        field = '.'.join(str(x) for x in error['loc'])
        errors.append(f"{field}: {error['msg']}")
    return ValidationError('; '.join(errors))


class CRUDBase:
    """Base class providing common CRUD operations for Flask blueprints.

    This class encapsulates common patterns for:
    - Paginated, filtered list retrieval
    - Single resource retrieval
    - Resource creation with validation
    - Resource updates with validation
    - Resource deletion

    Every successful write also appends a row to the change feed.

    Subclasses should override:
    - serialize() - to customize serialization
    - validate_create_data() - to customize creation validation
    - validate_update_data() - to customize update validation
    - filter_args - query-string arguments accepted as equality filters
    """

    filter_args: List[str] = []

    def __init__(self, model_class: Type[DeclarativeBase], logger_name: Optional[str] = None):
        """Initialize CRUD base class.

        Args:
            model_class: SQLAlchemy model class
            logger_name: Optional logger name (defaults to class name)
        """
        self.model = model_class
        self.logger = logging.getLogger(logger_name or self.__class__.__name__)

    def build_query(self, args: Dict[str, Any]):
        """Build the list query from request arguments.

        Only names listed in ``filter_args`` are applied, as equality filters.
        """
        query = self.model.query
        for name in self.filter_args:
            value = args.get(name)
            if value in (None, ''):
                continue
            column = getattr(self.model, name)
            if isinstance(column.type, Integer):
                try:
                    value = int(value)
                except (TypeError, ValueError):
                    self.logger.warning(f"Ignoring non-integer filter {name}={value!r}")
                    continue
            query = query.filter(column == value)
        return query.order_by(self.model.id)

    def get_list(self, page: int = 1, per_page: int = 50, max_per_page: int = 100,
                 args: Optional[Dict[str, Any]] = None) -> tuple:
        """Get paginated list of resources.

        Args:
            page: Page number (default: 1)
            per_page: Items per page (default: 50)
            max_per_page: Maximum items per page (default: 100)
            args: Query-string arguments used for filtering

        Returns:
            Flask JSON response with paginated results
        """
        per_page = min(per_page, max_per_page)

        pagination = self.build_query(args or {}).paginate(
            page=page,
            per_page=per_page,
            error_out=False
        )

        items = [self.serialize(item) for item in pagination.items]

        return jsonify({
            self.get_plural_name(): items,
            'pagination': {
                'page': pagination.page,
                'per_page': pagination.per_page,
                'total': pagination.total,
                'pages': pagination.pages,
                'has_next': pagination.has_next,
                'has_prev': pagination.has_prev
            }
        })

    def get_detail(self, resource_id: int) -> tuple:
        """Get single resource by ID."""
        resource = self.model.query.get_or_404(resource_id)
        return jsonify(self.serialize(resource))

    def create(self, validate_func: Optional[Callable] = None) -> tuple:
        """Create a new resource.

        Args:
            validate_func: Optional custom validation function that takes data dict
                         and returns validated data dict

        Returns:
            Flask JSON response with created resource ID
        """
        try:
            data = self.get_json_data()

            if validate_func:
                validated_data = validate_func(data)
            else:
                validated_data = self.validate_create_data(data)

            resource = self.model(**validated_data)
            db.session.add(resource)
            db.session.flush()
            record_change(self.model.__tablename__, resource.id, ChangeAction.INSERT)
            db.session.commit()

            self.logger.info(f"Created {self.get_singular_name()}: {resource.id}")

            return jsonify(self.created_payload(resource)), 201

        except ValidationError as e:
            self.logger.warning(f"Validation error in {self.get_singular_name()} creation: {e}")
            db.session.rollback()
            return jsonify({'error': str(e)}), 400
        except Exception as e:
            self.logger.error(f"Failed to create {self.get_singular_name()}: {e}", exc_info=True)
            db.session.rollback()
            return jsonify({'error': f'Failed to create {self.get_singular_name()}'}), 500

    def update(self, resource_id: int, validate_func: Optional[Callable] = None) -> tuple:
        """Update an existing resource.

        Args:
            resource_id: Primary key ID of the resource
            validate_func: Optional custom validation function that takes (data, resource)
                         and returns validated data dict

        Returns:
            Flask JSON response with success message
        """
        resource = self.model.query.get_or_404(resource_id)
        try:
            data = self.get_json_data()

            if validate_func:
                validated_data = validate_func(data, resource)
            else:
                validated_data = self.validate_update_data(data)

            for key, value in validated_data.items():
                setattr(resource, key, value)

            record_change(self.model.__tablename__, resource.id, ChangeAction.UPDATE)
            db.session.commit()

            self.logger.info(f"Updated {self.get_singular_name()}: {resource_id}")
            return jsonify(self.updated_payload(resource))

        except ValidationError as e:
            self.logger.warning(f"Validation error in {self.get_singular_name()} update: {e}")
            db.session.rollback()
            return jsonify({'error': str(e)}), 400
        except Exception as e:
            self.logger.error(f"Failed to update {self.get_singular_name()}: {e}", exc_info=True)
            db.session.rollback()
            return jsonify({'error': f'Failed to update {self.get_singular_name()}'}), 500

    def delete(self, resource_id: int) -> tuple:
        """Delete a resource."""
        resource = self.model.query.get_or_404(resource_id)
        try:
            db.session.delete(resource)
            record_change(self.model.__tablename__, resource_id, ChangeAction.DELETE)
            db.session.commit()

            self.logger.info(f"Deleted {self.get_singular_name()}: {resource_id}")
            return jsonify({'message': f'{self.get_singular_name().title()} deleted successfully'})
        except Exception as e:
            self.logger.error(f"Failed to delete {self.get_singular_name()}: {e}", exc_info=True)
            db.session.rollback()
            return jsonify({'error': f'Failed to delete {self.get_singular_name()}'}), 500

    def created_payload(self, resource) -> Dict[str, Any]:
        return {
            'id': resource.id,
            'message': f'{self.get_singular_name().title()} created successfully'
        }

    def updated_payload(self, resource) -> Dict[str, Any]:
        return {
            'id': resource.id,
            'message': f'{self.get_singular_name().title()} updated successfully'
        }

    def serialize(self, resource: DeclarativeBase) -> Dict[str, Any]:
        """Serialize resource to dictionary.

        Subclasses should override this method to customize serialization.
        """
        result = {}
        for column in resource.__table__.columns:
            value = getattr(resource, column.name)
            if hasattr(value, 'isoformat'):
                result[column.name] = value.isoformat()
            elif hasattr(value, 'value'):
                result[column.name] = value.value
            else:
                result[column.name] = value
        return result

    def get_json_data(self) -> Dict[str, Any]:
        """Get and validate JSON data from request.

        Raises:
            ValidationError: If JSON is invalid or not a dict
        """
        data = request.get_json(silent=True)
        if data is None:
            raise ValidationError('Request body must contain valid JSON')
        if not isinstance(data, dict):
            raise ValidationError('Request data must be a JSON object')
        return data

    def validate_create_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Validate data for creation. Subclasses override."""
        return data

    def validate_update_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Validate data for update. Only fields present in data need validating."""
        return data

    def get_singular_name(self) -> str:
        """Get singular resource name for messages."""
        table_name = self.model.__tablename__
        if table_name.endswith('s'):
            return table_name[:-1]
        return table_name

    def get_plural_name(self) -> str:
        """Get plural resource name for responses."""
        return self.model.__tablename__
