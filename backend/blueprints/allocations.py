"""Engineer allocations blueprint for Flask API."""
from flask import Blueprint, request, jsonify
from pydantic import ValidationError as PydanticValidationError
from ..models import db, Site, EngineerAllocation, record_change
from ..base.crud_base import CRUDBase, pydantic_errors_to_validation_error
from ..utils import validate_foreign_key, api_error, handle_api_exception
from .auth import admin_required, current_user
from shared.enums import AllocationStatus, ChangeAction, PriorityLevel, UserRole
from shared.models import now
from shared.schemas import AllocationBatchCreate, AllocationUpdate, AllocationResponse
from shared.validation import ValidationError, Validator
bp = Blueprint('allocations', __name__, url_prefix='/api')


class AllocationCRUD(CRUDBase):
    """CRUD operations for EngineerAllocation model."""

    filter_args = ['user_id', 'status', 'site_id', 'priority', 'region']

    def __init__(self):
        super().__init__(EngineerAllocation, logger_name='allocations')

    def serialize(self, allocation):
        return AllocationResponse.model_validate(allocation).model_dump(mode='json')

    def validate_batch(self, data):
        """Validate a batch request and resolve every site up front."""
        try:
            batch = AllocationBatchCreate(**data)
        except PydanticValidationError as e:
            raise pydantic_errors_to_validation_error(e)

        if not validate_foreign_key('users', 'id', batch.user_id):
            raise ValidationError(f'user_id {batch.user_id} does not exist')

        sites = []
        for site_id in dict.fromkeys(batch.site_ids):
            site = db.session.get(Site, site_id)
            if site is None:
                raise ValidationError(f'site_id {site_id} does not exist')
            sites.append(site)
        return batch, sites

    def create_batch(self):
        """Insert one allocation row per site; all rows commit or none do."""
        try:
            batch, sites = self.validate_batch(self.get_json_data())
            scheduled_date = batch.scheduled_date or now().date().isoformat()

            rows = []
            for site in sites:
                allocation = EngineerAllocation(
                    user_id=batch.user_id,
                    site_id=site.id,
                    site_name=site.name,
                    region=site.region or '',
                    address=site.contact_name or '',
                    priority=batch.priority,
                    status=batch.status,
                    scheduled_date=scheduled_date,
                )
                db.session.add(allocation)
                rows.append(allocation)
            db.session.flush()
            for allocation in rows:
                record_change(self.model.__tablename__, allocation.id, ChangeAction.INSERT)
            db.session.commit()

            self.logger.info(f"Allocated {len(rows)} site(s) to user {batch.user_id}")
            return jsonify({
                'allocations': [self.serialize(row) for row in rows],
                'message': f'Allocated {len(rows)} site(s)'
            }), 201
        except ValidationError as e:
            db.session.rollback()
            return api_error(str(e), 400)
        except Exception as e:
            return handle_api_exception(e, 'allocate sites')

    def validate_update_data(self, data):
        try:
            validated = AllocationUpdate(**data).model_dump(exclude_unset=True)
        except PydanticValidationError as e:
            raise pydantic_errors_to_validation_error(e)
        if 'user_id' in validated and not validate_foreign_key('users', 'id', validated['user_id']):
            raise ValidationError(f"user_id {validated['user_id']} does not exist")
        return validated

    def get_plural_name(self):
        return 'allocations'


allocation_crud = AllocationCRUD()


@bp.route('/allocations', methods=['GET'])
def get_allocations():
    """List allocations; engineers only ever see their own."""
    args = request.args.to_dict()
    user = current_user()
    try:
        for name, choices in (('status', AllocationStatus), ('priority', PriorityLevel)):
            if args.get(name):
                Validator.validate_choice(args[name], name, [choice.value for choice in choices])
    except ValidationError as e:
        return api_error(str(e), 400)
    if user.role != UserRole.ADMIN:
        args['user_id'] = str(user.id)
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 100, type=int)
    return allocation_crud.get_list(page=page, per_page=per_page, max_per_page=1000, args=args)


@bp.route('/allocations/<int:allocation_id>', methods=['GET'])
def get_allocation(allocation_id):
    return allocation_crud.get_detail(allocation_id)


@bp.route('/allocations', methods=['POST'])
@admin_required
def create_allocations():
    """Batch-allocate sites to one engineer."""
    return allocation_crud.create_batch()


@bp.route('/allocations/<int:allocation_id>', methods=['PUT'])
def update_allocation(allocation_id):
    """Admins may change anything; an engineer may only move their own allocation's status."""
    user = current_user()
    if user.role != UserRole.ADMIN:
        allocation = db.get_or_404(EngineerAllocation, allocation_id)
        data = request.get_json(silent=True) or {}
        if allocation.user_id != user.id or set(data) - {'status'}:
            return api_error('Insufficient permissions', 403)
    return allocation_crud.update(allocation_id)


@bp.route('/allocations/<int:allocation_id>', methods=['DELETE'])
@admin_required
def delete_allocation(allocation_id):
    return allocation_crud.delete(allocation_id)
