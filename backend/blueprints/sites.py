"""Site catalog blueprint for Flask API."""
from flask import Blueprint, request, jsonify
from ..models import db, Site
from ..base.crud_base import CRUDBase
from .auth import admin_required
from shared.schemas import SiteResponse
from shared.validation import Validator, ValidationError
bp = Blueprint('sites', __name__, url_prefix='/api')


class SiteCRUD(CRUDBase):
    """CRUD operations for the site catalog."""

    def __init__(self):
        super().__init__(Site, logger_name='sites')

    def serialize(self, site):
        return SiteResponse.model_validate(site).model_dump(mode='json')

    def build_query(self, args):
        """Filter by case-insensitive name search and exact region."""
        query = self.model.query
        search = (args.get('search') or '').strip()
        if search:
            query = query.filter(Site.name.ilike(f'%{search}%'))
        region = args.get('region')
        if region:
            query = query.filter(Site.region == region)
        return query.order_by(Site.name, Site.id)

    def validate_create_data(self, data):
        return Validator.validate_site_data(data)

    def validate_update_data(self, data):
        if 'name' not in data:
            raise ValidationError('name is required')
        return Validator.validate_site_data(data)

    def get_plural_name(self):
        return 'sites'


site_crud = SiteCRUD()


@bp.route('/sites', methods=['GET'])
def get_sites():
    """Get paginated list of sites, optionally filtered by search and region."""
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 50, type=int)
    return site_crud.get_list(page=page, per_page=per_page, max_per_page=500, args=request.args)


@bp.route('/sites/regions', methods=['GET'])
def get_regions():
    """Distinct non-empty regions across the whole catalog."""
    rows = db.session.query(Site.region).filter(Site.region != '').distinct().order_by(Site.region).all()
    return jsonify({'regions': [row[0] for row in rows if row[0]]})


@bp.route('/sites/<int:site_id>', methods=['GET'])
def get_site(site_id):
    """Get single site by ID."""
    return site_crud.get_detail(site_id)


@bp.route('/sites', methods=['POST'])
@admin_required
def create_site():
    """Create a new site."""
    return site_crud.create()


@bp.route('/sites/<int:site_id>', methods=['PUT'])
@admin_required
def update_site(site_id):
    """Update an existing site."""
    return site_crud.update(site_id)


@bp.route('/sites/<int:site_id>', methods=['DELETE'])
@admin_required
def delete_site(site_id):
    """Delete a site and, through the foreign key, its allocations."""
    return site_crud.delete(site_id)
