"""
Project API Routes
Projects and their membership roles.
"""

import logging
from flask import Blueprint, jsonify

from services.errors import TaskBoardError
from services.project_service import ProjectService
from routes.api_tasks import _error_response, _unexpected_error, _json_body
from utils.auth import active_user_required, current_user_id

logger = logging.getLogger(__name__)

api_projects_bp = Blueprint('api_projects', __name__, url_prefix='/api')


@api_projects_bp.route('/projects', methods=['POST'])
@active_user_required
def create_project():
    """Create a project owned by the caller."""
    try:
        data = _json_body()
        project = ProjectService().create_project(
            current_user_id(),
            name=data.get('name'),
            description=data.get('description')
        )
        return jsonify({'success': True, 'project': project.to_dict()}), 201

    except TaskBoardError as e:
        return _error_response(e)
    except Exception as e:
        return _unexpected_error('PROJECT', e)


@api_projects_bp.route('/projects/<int:project_id>/members', methods=['GET'])
@active_user_required
def list_members(project_id):
    try:
        members = ProjectService().list_members(current_user_id(), project_id)
        return jsonify({
            'success': True,
            'members': [member.to_dict() for member in members],
            'total': len(members)
        })

    except TaskBoardError as e:
        return _error_response(e)
    except Exception as e:
        return _unexpected_error('MEMBERS', e)


@api_projects_bp.route('/projects/<int:project_id>/members', methods=['POST'])
@active_user_required
def add_member(project_id):
    """
    Grant a user access to the project.
    Body: {"user_id": int, "role": "member" | "viewer"}
    """
    try:
        data = _json_body()
        member = ProjectService().add_member(
            current_user_id(),
            project_id,
            data.get('user_id'),
            role=data.get('role', 'member')
        )
        return jsonify({'success': True, 'member': member.to_dict()}), 201

    except TaskBoardError as e:
        return _error_response(e)
    except Exception as e:
        return _unexpected_error('MEMBERS', e)


@api_projects_bp.route('/projects/<int:project_id>/members/<int:user_id>', methods=['PATCH'])
@active_user_required
def change_role(project_id, user_id):
    try:
        member = ProjectService().change_role(
            current_user_id(),
            project_id,
            user_id,
            _json_body().get('role')
        )
        return jsonify({'success': True, 'member': member.to_dict()})

    except TaskBoardError as e:
        return _error_response(e)
    except Exception as e:
        return _unexpected_error('MEMBERS', e)


@api_projects_bp.route('/projects/<int:project_id>/members/<int:user_id>', methods=['DELETE'])
@active_user_required
def remove_member(project_id, user_id):
    try:
        ProjectService().remove_member(current_user_id(), project_id, user_id)
        return jsonify({'success': True, 'message': 'Member removed'})

    except TaskBoardError as e:
        return _error_response(e)
    except Exception as e:
        return _unexpected_error('MEMBERS', e)
