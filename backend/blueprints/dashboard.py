"""Admin dashboard blueprint: record counts grouped by status."""
from flask import Blueprint, jsonify
from sqlalchemy import func
from ..models import db, Site, SiteSurvey, SiteInstallation, EngineerAllocation, EngineerProfile
from .auth import admin_required
from shared.enums import SurveyStatus, AllocationStatus
bp = Blueprint('dashboard', __name__, url_prefix='/api')


def counts_by_status(model, statuses):
    rows = db.session.query(model.status, func.count(model.id)).group_by(model.status).all()
    counts = {status.value: 0 for status in statuses}
    for status, count in rows:
        key = status.value if hasattr(status, 'value') else status
        counts[key] = count
    counts['total'] = sum(count for key, count in counts.items() if key != 'total')
    return counts


@bp.route('/dashboard', methods=['GET'])
@admin_required
def get_dashboard():
    """Summary counts for the admin dashboard."""
    allocations = counts_by_status(EngineerAllocation, AllocationStatus)
    recent = SiteSurvey.query.order_by(SiteSurvey.updated_at.desc(), SiteSurvey.id.desc()).limit(5).all()
    return jsonify({
        'surveys': counts_by_status(SiteSurvey, SurveyStatus),
        'installations': counts_by_status(SiteInstallation, SurveyStatus),
        'allocations': allocations,
        'pending_allocations': allocations[AllocationStatus.PENDING.value],
        'sites': db.session.query(func.count(Site.id)).scalar(),
        'engineers': db.session.query(func.count(EngineerProfile.id)).scalar(),
        'recent_surveys': [
            {'id': s.id, 'site_name': s.site_name, 'status': s.status.value, 'updated_at': s.updated_at.isoformat()}
            for s in recent
        ]
    })
