"""
API de gamificação (/api/gamification).

Respostas no envelope {'ok': True, 'data': ...}; erros tratados por
handle_api_errors. Rotas de escrita exigem perfil de gestão.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ....common.error_handlers import get_json_body, handle_api_errors, require_fields
from ....common.validation import parse_datetime, validate_boolean, validate_integer
from ....core.container import get_container
from ....core.extensions import limiter, rate_limit_key
from ....security.auth import login_required, management_required

gamification_api_bp = Blueprint('gamification_api', __name__, url_prefix='/api/gamification')


def _arg_int(name, default=None, min_value=None, max_value=None):
    raw = request.args.get(name)
    if raw is None or raw == '':
        return default
    return validate_integer(raw, min_value=min_value, max_value=max_value)


def _arg_bool(name):
    return validate_boolean(request.args.get(name), default=False)


def _ok(data, status=200):
    return jsonify({'ok': True, 'data': data}), status


def _grant_rate_limit():
    return current_app.config.get('XP_GRANT_RATE_LIMIT', '10 per minute')


@gamification_api_bp.route('/health', methods=['GET'])
def health():
    return jsonify({'ok': True, 'service': 'gamification'})


# ──────────────────────────────────────────────
# Avaliações e XP
# ──────────────────────────────────────────────


@gamification_api_bp.route('/evaluations', methods=['POST'])
@management_required
@require_fields('attendant_id', 'rating')
@handle_api_errors
def register_evaluation():
    data = get_json_body()
    date = parse_datetime(data['date'], 'date') if data.get('date') else None
    evaluation, event = get_container().xp_ledger.record_evaluation(
        str(data['attendant_id']), data['rating'], date=date, comment=data.get('comment')
    )
    return _ok({'evaluation': evaluation.to_dict(), 'xp_event': event.to_dict()}, 201)


@gamification_api_bp.route('/xp/<attendant_id>', methods=['GET'])
@login_required
@handle_api_errors
def attendant_xp(attendant_id):
    summary = get_container().xp_ledger.xp_summary(attendant_id, season_id=_arg_int('season_id'))
    return _ok(summary)


@gamification_api_bp.route('/xp/<attendant_id>/history', methods=['GET'])
@login_required
@handle_api_errors
def attendant_xp_history(attendant_id):
    events = get_container().xp_ledger.history(
        attendant_id, season_id=_arg_int('season_id'), limit=_arg_int('limit', 100, 1, 1000)
    )
    return _ok([e.to_dict() for e in events])


# ──────────────────────────────────────────────
# XP avulso
# ──────────────────────────────────────────────


@gamification_api_bp.route('/xp-grants', methods=['POST'])
@management_required
@limiter.limit(_grant_rate_limit, key_func=rate_limit_key)
@require_fields('attendant_id', 'xp_type_id')
@handle_api_errors
def grant_xp():
    data = get_json_body()
    result = get_container().grant_guard.grant(
        str(data['attendant_id']), data['xp_type_id'], g.user_email, justification=data.get('justification')
    )
    return _ok(result.to_dict(), 201)


@gamification_api_bp.route('/xp-grants', methods=['GET'])
@management_required
@handle_api_errors
def list_xp_grants():
    grants = get_container().grant_guard.history(
        granted_by=request.args.get('granted_by'),
        attendant_id=request.args.get('attendant_id'),
        limit=_arg_int('limit', 50),
    )
    return _ok(grants)


@gamification_api_bp.route('/xp-grants/daily-stats', methods=['GET'])
@management_required
@handle_api_errors
def xp_grants_daily_stats():
    day = parse_datetime(request.args['date'], 'date') if request.args.get('date') else None
    return _ok(get_container().grant_guard.daily_usage(g.user_email, day).to_dict())


@gamification_api_bp.route('/xp-types', methods=['GET'])
@login_required
@handle_api_errors
def list_xp_types():
    types = get_container().grant_guard.list_types(active_only=_arg_bool('active_only'))
    return _ok([t.to_dict() for t in types])


@gamification_api_bp.route('/xp-types', methods=['POST'])
@management_required
@handle_api_errors
def create_xp_type():
    xp_type = get_container().grant_guard.create_type(get_json_body(), g.user_email)
    return _ok(xp_type.to_dict(), 201)


@gamification_api_bp.route('/xp-types/<int:type_id>', methods=['PUT'])
@management_required
@handle_api_errors
def update_xp_type(type_id):
    return _ok(get_container().grant_guard.update_type(type_id, get_json_body()).to_dict())


@gamification_api_bp.route('/xp-types/<int:type_id>/toggle', methods=['POST'])
@management_required
@handle_api_errors
def toggle_xp_type(type_id):
    return _ok(get_container().grant_guard.toggle_type(type_id).to_dict())


@gamification_api_bp.route('/xp-grant-config', methods=['GET'])
@management_required
@handle_api_errors
def get_xp_grant_config():
    return _ok(get_container().settings_service.get_grant_limits().to_dict())


@gamification_api_bp.route('/xp-grant-config', methods=['PUT'])
@management_required
@handle_api_errors
def update_xp_grant_config():
    limits = get_container().settings_service.update_grant_limits(get_json_body(), g.user_email)
    return _ok(limits.to_dict())


@gamification_api_bp.route('/config', methods=['GET'])
@login_required
@handle_api_errors
def get_gamification_config():
    return _ok(get_container().settings_service.get_settings().to_dict())


@gamification_api_bp.route('/config', methods=['PUT'])
@management_required
@handle_api_errors
def update_gamification_config():
    return _ok(get_container().settings_service.update_settings(get_json_body()).to_dict())


# ──────────────────────────────────────────────
# Temporadas
# ──────────────────────────────────────────────


@gamification_api_bp.route('/seasons', methods=['GET'])
@login_required
@handle_api_errors
def list_seasons():
    return _ok(get_container().season_service.overview())


@gamification_api_bp.route('/seasons/active', methods=['GET'])
@login_required
@handle_api_errors
def active_season():
    seasons = get_container().season_service
    season = seasons.resolve_active()
    return _ok(seasons.describe(season) if season else None)


@gamification_api_bp.route('/seasons', methods=['POST'])
@management_required
@require_fields('name', 'start_date', 'end_date')
@handle_api_errors
def create_season():
    seasons = get_container().season_service
    return _ok(seasons.describe(seasons.create(get_json_body())), 201)


@gamification_api_bp.route('/seasons/<int:season_id>', methods=['GET'])
@login_required
@handle_api_errors
def get_season(season_id):
    seasons = get_container().season_service
    return _ok(seasons.describe(seasons.get(season_id)))


@gamification_api_bp.route('/seasons/<int:season_id>', methods=['PUT'])
@management_required
@handle_api_errors
def update_season(season_id):
    seasons = get_container().season_service
    return _ok(seasons.describe(seasons.update(season_id, get_json_body())))


@gamification_api_bp.route('/seasons/<int:season_id>', methods=['DELETE'])
@management_required
@handle_api_errors
def delete_season(season_id):
    return _ok(get_container().season_service.delete(season_id, force=_arg_bool('force')))


@gamification_api_bp.route('/seasons/<int:season_id>/activate', methods=['POST'])
@management_required
@handle_api_errors
def activate_season(season_id):
    seasons = get_container().season_service
    result = seasons.activate(season_id, force=_arg_bool('force'))
    return _ok({'season': seasons.describe(result['season']), 'deactivated': result['deactivated']})


@gamification_api_bp.route('/seasons/<int:season_id>/deactivate', methods=['POST'])
@management_required
@handle_api_errors
def deactivate_season(season_id):
    seasons = get_container().season_service
    return _ok(seasons.describe(seasons.deactivate(season_id)))


# ──────────────────────────────────────────────
# Ranking
# ──────────────────────────────────────────────


@gamification_api_bp.route('/leaderboard', methods=['GET'])
@login_required
@handle_api_errors
def leaderboard():
    result = get_container().ranking_service.leaderboard(
        season_id=_arg_int('season_id'), limit=_arg_int('limit', 50)
    )
    season = result['season']
    return _ok({
        'season': season.to_dict() if season else None,
        'entries': [e.to_dict() for e in result['entries']],
    })


@gamification_api_bp.route('/leaderboard/<int:season_id>/attendant/<attendant_id>', methods=['GET'])
@login_required
@handle_api_errors
def leaderboard_position(season_id, attendant_id):
    entry = get_container().ranking_service.attendant_position(season_id, attendant_id)
    return _ok(entry.to_dict() if entry else None)


# ──────────────────────────────────────────────
# Conquistas
# ──────────────────────────────────────────────


@gamification_api_bp.route('/achievements', methods=['GET'])
@login_required
@handle_api_errors
def list_achievements():
    achievements = get_container().achievement_catalog.list_all(active_only=_arg_bool('active_only'))
    return _ok([a.to_dict() for a in achievements])


@gamification_api_bp.route('/achievements', methods=['POST'])
@management_required
@require_fields('id', 'title', 'xp', 'criteria_key')
@handle_api_errors
def create_achievement():
    achievement = get_container().achievement_catalog.create(get_json_body(), g.user_email)
    return _ok(achievement.to_dict(), 201)


@gamification_api_bp.route('/achievements/<achievement_id>', methods=['PUT'])
@management_required
@handle_api_errors
def update_achievement(achievement_id):
    return _ok(get_container().achievement_catalog.update(achievement_id, get_json_body()).to_dict())


@gamification_api_bp.route('/achievements/<achievement_id>/toggle', methods=['POST'])
@management_required
@handle_api_errors
def toggle_achievement(achievement_id):
    return _ok(get_container().achievement_catalog.toggle(achievement_id).to_dict())


@gamification_api_bp.route('/achievements/status/<attendant_id>', methods=['GET'])
@login_required
@handle_api_errors
def achievement_status(attendant_id):
    return _ok(get_container().achievement_evaluator.achievement_status(attendant_id))


@gamification_api_bp.route('/achievements/process-attendant', methods=['POST'])
@management_required
@require_fields('attendant_id')
@handle_api_errors
def process_attendant():
    data = get_json_body()
    result = get_container().retroactive_processor.process_attendant(
        str(data['attendant_id']),
        season_id=validate_integer(data.get('season_id'), min_value=1, allow_none=True),
        force_reprocess=validate_boolean(data.get('force_reprocess')),
    )
    return _ok(result.to_dict())


@gamification_api_bp.route('/achievements/process-season', methods=['POST'])
@management_required
@require_fields('season_id')
@handle_api_errors
def process_season():
    data = get_json_body()
    attendant_ids = data.get('attendant_ids')
    if attendant_ids is not None:
        attendant_ids = [str(a) for a in attendant_ids] if isinstance(attendant_ids, list) else None
    result = get_container().retroactive_processor.process_season(
        validate_integer(data['season_id'], min_value=1),
        attendant_ids=attendant_ids or None,
        force_reprocess=validate_boolean(data.get('force_reprocess')),
    )
    return _ok(result.to_dict())


@gamification_api_bp.route('/achievements/process-all', methods=['POST'])
@management_required
@handle_api_errors
def process_all():
    data = get_json_body()
    result = get_container().retroactive_processor.process_all(
        force_reprocess=validate_boolean(data.get('force_reprocess'))
    )
    return _ok(result.to_dict())


@gamification_api_bp.route('/achievements/<attendant_id>/<achievement_id>', methods=['DELETE'])
@management_required
@handle_api_errors
def reset_achievement(attendant_id, achievement_id):
    removed = get_container().unlock_coordinator.reset(
        attendant_id, achievement_id, season_id=_arg_int('season_id')
    )
    return _ok(removed.to_dict())
