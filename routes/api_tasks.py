"""
Task API Routes
REST endpoints for project tasks and Kanban board ordering.
"""

import logging
from flask import Blueprint, request, jsonify, current_app

from models import db
from services.board_projector import BoardProjector
from services.errors import TaskBoardError
from services.task_ordering_service import TaskOrderingService, parse_instructions
from services.task_service import TaskService
from utils.auth import active_user_required, current_user_id

logger = logging.getLogger(__name__)

api_tasks_bp = Blueprint('api_tasks', __name__, url_prefix='/api')


def _ordering_service() -> TaskOrderingService:
    return TaskOrderingService(lock_timeout=current_app.config.get('COLUMN_LOCK_TIMEOUT'))


def _task_service() -> TaskService:
    return TaskService(ordering=_ordering_service())


def _board_projector() -> BoardProjector:
    return BoardProjector(
        columns=current_app.config.get('KANBAN_COLUMNS'),
        default_column=current_app.config.get('KANBAN_DEFAULT_COLUMN')
    )


def _error_response(error: TaskBoardError):
    return jsonify({
        'success': False,
        'message': error.message,
        'error': error.to_dict()
    }), error.http_status


def _unexpected_error(tag: str, error: Exception):
    db.session.rollback()
    logger.error(f"[{tag}] Unexpected error: {error}", exc_info=True)
    return jsonify({'success': False, 'message': 'Internal server error'}), 500


def _json_body():
    return request.get_json(silent=True) or {}


@api_tasks_bp.route('/projects/<int:project_id>/tasks', methods=['POST'])
@active_user_required
def create_task(project_id):
    """Create a task at the end of its column."""
    try:
        data = _json_body()
        task = _task_service().create_task(
            current_user_id(),
            project_id,
            title=data.get('title'),
            description=data.get('description'),
            status=data.get('status'),
            assignee_id=data.get('assignee_id'),
            due_date=data.get('due_date')
        )
        return jsonify({'success': True, 'task': task.to_dict()}), 201

    except TaskBoardError as e:
        return _error_response(e)
    except Exception as e:
        return _unexpected_error('CREATE', e)


@api_tasks_bp.route('/projects/<int:project_id>/tasks', methods=['GET'])
@active_user_required
def list_tasks(project_id):
    """All tasks of a project, newest first."""
    try:
        tasks = _task_service().list_tasks(current_user_id(), project_id)
        return jsonify({
            'success': True,
            'tasks': [task.to_dict() for task in tasks],
            'total': len(tasks)
        })

    except TaskBoardError as e:
        return _error_response(e)
    except Exception as e:
        return _unexpected_error('LIST', e)


@api_tasks_bp.route('/projects/<int:project_id>/board', methods=['GET'])
@active_user_required
def get_board(project_id):
    """
    Kanban board: tasks grouped by column in position order.
    Optional ?columns=todo,doing,done overrides the configured columns.
    """
    try:
        columns_param = request.args.get('columns')
        columns = columns_param.split(',') if columns_param else None
        board = _board_projector().get_board(current_user_id(), project_id, columns=columns)
        return jsonify({
            'success': True,
            'project_id': project_id,
            'columns': list(board.keys()),
            'board': board
        })

    except TaskBoardError as e:
        return _error_response(e)
    except Exception as e:
        return _unexpected_error('BOARD', e)


@api_tasks_bp.route('/tasks/<int:task_id>', methods=['GET'])
@active_user_required
def get_task(task_id):
    try:
        task = _task_service().get_task(current_user_id(), task_id)
        return jsonify({'success': True, 'task': task.to_dict()})

    except TaskBoardError as e:
        return _error_response(e)
    except Exception as e:
        return _unexpected_error('GET', e)


@api_tasks_bp.route('/tasks/<int:task_id>', methods=['PATCH'])
@active_user_required
def update_task(task_id):
    """Update content fields; a new status moves the task to the end of that column."""
    try:
        task = _task_service().update_task(current_user_id(), task_id, _json_body())
        return jsonify({'success': True, 'task': task.to_dict()})

    except TaskBoardError as e:
        return _error_response(e)
    except Exception as e:
        return _unexpected_error('UPDATE', e)


@api_tasks_bp.route('/tasks/<int:task_id>', methods=['DELETE'])
@active_user_required
def delete_task(task_id):
    """Delete a task and compact its column."""
    try:
        result = _task_service().delete_task(current_user_id(), task_id)
        return jsonify({
            'success': True,
            'message': 'Task deleted',
            'updated_task_ids': result.updated_task_ids
        })

    except TaskBoardError as e:
        return _error_response(e)
    except Exception as e:
        return _unexpected_error('DELETE', e)


@api_tasks_bp.route('/tasks/<int:task_id>/move', methods=['PATCH'])
@active_user_required
def move_task(task_id):
    """
    Move a single task.
    Body: {"to_position": int, "to_status": optional str}
    """
    try:
        data = _json_body()
        result = _ordering_service().move_task(
            current_user_id(),
            task_id,
            to_position=data.get('to_position', data.get('toPosition')),
            to_status=data.get('to_status', data.get('toStatus'))
        )
        return jsonify({
            'success': True,
            'message': 'Task moved',
            **result.to_dict()
        })

    except TaskBoardError as e:
        return _error_response(e)
    except Exception as e:
        return _unexpected_error('MOVE', e)


@api_tasks_bp.route('/tasks/reorder', methods=['POST'])
@active_user_required
def reorder_tasks():
    """
    Batch reorder after drag-and-drop.
    Body: {"updates": [{"task_id": int, "to_position": int, "to_status": optional str}, ...]}
    Instructions apply in the order given.
    """
    try:
        instructions = parse_instructions(_json_body().get('updates'))
        result = _ordering_service().reorder_tasks(current_user_id(), instructions)
        return jsonify({
            'success': True,
            'message': f'Updated positions for {len(result.updated_task_ids)} tasks',
            **result.to_dict()
        })

    except TaskBoardError as e:
        return _error_response(e)
    except Exception as e:
        return _unexpected_error('REORDER', e)
