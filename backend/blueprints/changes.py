"""Change feed blueprint.

Clients poll ``GET /api/changes?since=<last id>&table=<table>`` and react to
any returned event; ids increase monotonically so ``latest_id`` is the
cursor for the next poll.
"""
from flask import Blueprint, request, jsonify
from sqlalchemy import func
from ..models import db, ChangeEvent
from shared.schemas import ChangeEventResponse
bp = Blueprint('changes', __name__, url_prefix='/api')

MAX_EVENTS = 500


@bp.route('/changes', methods=['GET'])
def get_changes():
    """Return change events newer than ``since``, optionally for one table."""
    since = request.args.get('since', 0, type=int)
    table = request.args.get('table')
    limit = min(request.args.get('limit', MAX_EVENTS, type=int), MAX_EVENTS)

    query = ChangeEvent.query.filter(ChangeEvent.id > since)
    if table:
        query = query.filter(ChangeEvent.table_name == table)
    events = query.order_by(ChangeEvent.id).limit(limit).all()

    if events:
        latest_id = events[-1].id
    else:
        latest_id = max(since, db.session.query(func.max(ChangeEvent.id)).scalar() or 0)

    return jsonify({
        'changes': [ChangeEventResponse.model_validate(e).model_dump(mode='json') for e in events],
        'latest_id': latest_id
    })
