"""
Tests for project access roles and membership management.
"""

import pytest

from services.errors import ForbiddenError, InvalidArgumentError, NotFoundError
from services.project_access import ProjectAccessService, EDITOR_ROLES, OWNER_ONLY
from services.project_service import ProjectService


class TestProjectAccessService:

    def test_owner_role(self, owner, project):
        assert ProjectAccessService.get_role(owner.id, project.id) == 'owner'

    def test_member_and_viewer_roles(self, project, make_user, add_member):
        member, viewer = make_user(), make_user()
        add_member(project, member, role='member')
        add_member(project, viewer, role='viewer')

        assert ProjectAccessService.get_role(member.id, project.id) == 'member'
        assert ProjectAccessService.get_role(viewer.id, project.id) == 'viewer'

    def test_outsider_has_no_role(self, project, make_user):
        assert ProjectAccessService.get_role(make_user().id, project.id) is None

    def test_missing_project(self, owner):
        with pytest.raises(NotFoundError):
            ProjectAccessService.get_role(owner.id, 9999)

    @pytest.mark.parametrize("project_id", [0, 10 ** 30])
    def test_out_of_range_project_id(self, owner, project_id):
        with pytest.raises(InvalidArgumentError):
            ProjectAccessService.get_role(owner.id, project_id)

    def test_require_role_filters_by_allowed(self, project, make_user, add_member):
        viewer = make_user()
        add_member(project, viewer, role='viewer')

        assert ProjectAccessService.require_role(viewer.id, project.id) == 'viewer'
        with pytest.raises(ForbiddenError):
            ProjectAccessService.require_role(viewer.id, project.id, EDITOR_ROLES)


class TestProjectService:

    def test_create_project(self, owner):
        project = ProjectService().create_project(owner.id, '  Roadmap ', 'Q3 plan')

        assert project.name == 'Roadmap'
        assert project.owner_id == owner.id
        assert ProjectAccessService.require_role(owner.id, project.id, OWNER_ONLY) == 'owner'

    def test_create_project_requires_name(self, owner):
        with pytest.raises(InvalidArgumentError):
            ProjectService().create_project(owner.id, '')

    def test_add_list_change_remove_member(self, owner, project, make_user):
        service = ProjectService()
        user = make_user()

        service.add_member(owner.id, project.id, user.id, role='viewer')
        assert [(m.user_id, m.role) for m in service.list_members(owner.id, project.id)] == [(user.id, 'viewer')]

        service.change_role(owner.id, project.id, user.id, 'member')
        assert ProjectAccessService.get_role(user.id, project.id) == 'member'

        service.remove_member(owner.id, project.id, user.id)
        assert service.list_members(owner.id, project.id) == []
        assert ProjectAccessService.get_role(user.id, project.id) is None

    def test_add_member_twice_rejected(self, owner, project, make_user):
        service = ProjectService()
        user = make_user()
        service.add_member(owner.id, project.id, user.id)

        with pytest.raises(InvalidArgumentError):
            service.add_member(owner.id, project.id, user.id)

    @pytest.mark.parametrize("role", ['owner', 'admin', None])
    def test_add_member_rejects_role(self, owner, project, make_user, role):
        with pytest.raises(InvalidArgumentError):
            ProjectService().add_member(owner.id, project.id, make_user().id, role=role)

    def test_add_unknown_user(self, owner, project):
        with pytest.raises(NotFoundError):
            ProjectService().add_member(owner.id, project.id, 777777)

    def test_owner_cannot_add_self(self, owner, project):
        with pytest.raises(InvalidArgumentError):
            ProjectService().add_member(owner.id, project.id, owner.id)

    def test_only_owner_manages_members(self, project, make_user, add_member):
        member = make_user()
        add_member(project, member)

        with pytest.raises(ForbiddenError):
            ProjectService().add_member(member.id, project.id, make_user().id)
        with pytest.raises(ForbiddenError):
            ProjectService().list_members(member.id, project.id)

    def test_change_role_of_non_member(self, owner, project, make_user):
        with pytest.raises(NotFoundError):
            ProjectService().change_role(owner.id, project.id, make_user().id, 'viewer')

    @pytest.mark.parametrize("user_id", [None, 0, 10 ** 30, 'bob'])
    def test_add_member_rejects_bad_user_id(self, owner, project, user_id):
        with pytest.raises(InvalidArgumentError):
            ProjectService().add_member(owner.id, project.id, user_id)

    def test_change_role_rejects_huge_user_id(self, owner, project):
        with pytest.raises(InvalidArgumentError):
            ProjectService().change_role(owner.id, project.id, 10 ** 30, 'viewer')
