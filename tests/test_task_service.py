"""
Tests for task create/update/delete and the column density they preserve.
"""

from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from models import db, Task
from services.errors import ForbiddenError, InvalidArgumentError, NotFoundError, StorageFailureError
from services.task_ordering_service import TaskOrderingService
from services.task_service import TaskService
from services.task_store import MAX_ID, TaskStore


@pytest.fixture
def service():
    return TaskService()


class TestCreateTask:

    def test_appends_to_end_of_column(self, service, owner, project, make_tasks, column, positions):
        make_tasks(project, 'todo', ['A', 'B'])

        task = service.create_task(owner.id, project.id, 'C')

        assert task.status == 'todo'
        assert task.position == 2
        assert task.created_by_id == owner.id
        assert column(project.id, 'todo') == ['A', 'B', 'C']
        assert positions(project.id, 'todo') == [0, 1, 2]

    def test_first_task_in_new_column(self, service, owner, project):
        task = service.create_task(owner.id, project.id, 'Ship it', status='review')
        assert (task.status, task.position) == ('review', 0)

    def test_parses_optional_fields(self, service, owner, project):
        task = service.create_task(
            owner.id, project.id, '  Plan  ',
            description='details',
            assignee_id=owner.id,
            due_date='2030-01-31'
        )

        assert task.title == 'Plan'
        assert task.due_date == date(2030, 1, 31)
        assert task.assignee_id == owner.id

    @pytest.mark.parametrize("kwargs", [
        {'title': ''},
        {'title': '   '},
        {'title': None},
        {'title': 'x' * 256},
        {'title': 'ok', 'due_date': 'next tuesday'},
        {'title': 'ok', 'assignee_id': 'bob'},
        {'title': 'ok', 'status': ''},
    ])
    def test_rejects_invalid_input(self, service, owner, project, kwargs):
        with pytest.raises(InvalidArgumentError):
            service.create_task(owner.id, project.id, **kwargs)
        assert db.session.query(Task).count() == 0

    def test_viewer_cannot_create(self, service, project, make_user, add_member):
        viewer = make_user()
        add_member(project, viewer, role='viewer')
        with pytest.raises(ForbiddenError):
            service.create_task(viewer.id, project.id, 'Nope')


class TestListAndGet:

    def test_list_newest_first(self, service, owner, project):
        first = service.create_task(owner.id, project.id, 'first')
        second = service.create_task(owner.id, project.id, 'second')

        tasks = service.list_tasks(owner.id, project.id)
        assert [t.id for t in tasks] == [second.id, first.id]

    def test_get_missing(self, service, owner):
        with pytest.raises(NotFoundError):
            service.get_task(owner.id, 123456)

    def test_get_requires_membership(self, service, owner, project, make_user):
        task = service.create_task(owner.id, project.id, 'secret')
        with pytest.raises(ForbiddenError):
            service.get_task(make_user().id, task.id)


class TestUpdateTask:

    def test_updates_content_fields(self, service, owner, project):
        task = service.create_task(owner.id, project.id, 'old')

        updated = service.update_task(owner.id, task.id, {
            'title': 'new',
            'description': 'more',
            'due_date': None
        })

        assert updated.title == 'new'
        assert updated.description == 'more'
        assert updated.position == 0

    def test_status_change_appends_to_new_column(self, service, owner, project, make_tasks, column, positions):
        ids = make_tasks(project, 'todo', ['A', 'B', 'C'])
        make_tasks(project, 'done', ['D', 'E'])

        updated = service.update_task(owner.id, ids['A'], {'status': 'done'})

        assert (updated.status, updated.position) == ('done', 2)
        assert column(project.id, 'todo') == ['B', 'C']
        assert column(project.id, 'done') == ['D', 'E', 'A']
        assert positions(project.id, 'todo') == [0, 1]

    def test_same_status_is_not_a_move(self, service, owner, project, make_tasks, column):
        ids = make_tasks(project, 'todo', ['A', 'B'])
        service.update_task(owner.id, ids['A'], {'status': 'todo'})
        assert column(project.id, 'todo') == ['A', 'B']

    @pytest.mark.parametrize("changes", [
        {'position': 3},
        {'project_id': 2},
        {'title': ''},
        {'status': ''},
    ])
    def test_rejects_ordering_fields_and_bad_values(self, service, owner, project, changes):
        task = service.create_task(owner.id, project.id, 'keep')
        with pytest.raises(InvalidArgumentError):
            service.update_task(owner.id, task.id, changes)

    def test_missing_task(self, service, owner):
        with pytest.raises(NotFoundError):
            service.update_task(owner.id, 999, {'title': 'x'})

    @pytest.mark.parametrize("task_id", [0, -1, MAX_ID + 1, 10 ** 30, '1', True])
    def test_rejects_out_of_range_ids(self, service, owner, task_id):
        with pytest.raises(InvalidArgumentError):
            service.update_task(owner.id, task_id, {'title': 'x'})
        with pytest.raises(InvalidArgumentError):
            service.get_task(owner.id, task_id)
        with pytest.raises(InvalidArgumentError):
            service.delete_task(owner.id, task_id)

    def test_blocked_move_leaves_content_unchanged(self, owner, project, make_tasks, column):
        ids = make_tasks(project, 'todo', ['A', 'B'])
        make_tasks(project, 'done', ['D'])
        service = TaskService(ordering=TaskOrderingService(lock_timeout=0.1))

        held = service.locks.lock_for(project.id, 'done')
        held.acquire()
        try:
            with pytest.raises(StorageFailureError):
                service.update_task(owner.id, ids['A'], {'title': 'NEW', 'status': 'done'})
        finally:
            held.release()

        db.session.expire_all()
        stored = db.session.execute(
            select(Task.title, Task.status, Task.position).where(Task.id == ids['A'])
        ).one()
        assert tuple(stored) == ('A', 'todo', 0)
        assert column(project.id, 'done') == ['D']

    def test_failed_move_write_leaves_content_unchanged(self, service, owner, project, make_tasks, column, mocker):
        ids = make_tasks(project, 'todo', ['A', 'B'])
        mocker.patch.object(
            TaskStore, 'apply_changes',
            side_effect=OperationalError("UPDATE tasks", {}, Exception("disk I/O error"))
        )

        with pytest.raises(StorageFailureError):
            service.update_task(owner.id, ids['A'], {'title': 'NEW', 'description': 'x', 'status': 'done'})

        db.session.expire_all()
        stored = db.session.execute(
            select(Task.title, Task.description, Task.status).where(Task.id == ids['A'])
        ).one()
        assert tuple(stored) == ('A', None, 'todo')
        assert column(project.id, 'todo') == ['A', 'B']

    def test_content_and_status_written_together(self, service, owner, project, make_tasks, column):
        ids = make_tasks(project, 'todo', ['A'])

        updated = service.update_task(owner.id, ids['A'], {'title': 'A2', 'due_date': '2031-05-01', 'status': 'done'})

        assert (updated.title, updated.status, updated.position) == ('A2', 'done', 0)
        assert updated.due_date == date(2031, 5, 1)
        assert column(project.id, 'todo') == []


class TestTaskSerialization:

    def test_to_dict_fields(self, service, owner, project):
        task = service.create_task(owner.id, project.id, 'Plan', due_date='2030-01-31')

        data = task.to_dict()

        assert set(data) == {
            'id', 'project_id', 'title', 'description', 'status', 'position',
            'due_date', 'assignee_id', 'created_by_id', 'created_at', 'updated_at',
        }
        assert data['due_date'] == '2030-01-31'


class TestDeleteTask:

    def test_delete_compacts_column(self, service, owner, project, make_tasks, column, positions):
        ids = make_tasks(project, 'todo', ['A', 'B', 'C', 'D'])

        result = service.delete_task(owner.id, ids['B'])

        assert db.session.get(Task, ids['B']) is None
        assert column(project.id, 'todo') == ['A', 'C', 'D']
        assert positions(project.id, 'todo') == [0, 1, 2]
        assert result.updated_task_ids == [ids['C'], ids['D']]

    def test_delete_last_task_writes_nothing_else(self, service, owner, project, make_tasks):
        ids = make_tasks(project, 'todo', ['A', 'B'])
        result = service.delete_task(owner.id, ids['B'])
        assert result.updated_task_ids == []

    def test_delete_missing(self, service, owner):
        with pytest.raises(NotFoundError):
            service.delete_task(owner.id, 31337)

    def test_viewer_cannot_delete(self, service, project, make_tasks, make_user, add_member, column):
        ids = make_tasks(project, 'todo', ['A'])
        viewer = make_user()
        add_member(project, viewer, role='viewer')

        with pytest.raises(ForbiddenError):
            service.delete_task(viewer.id, ids['A'])
        assert column(project.id, 'todo') == ['A']
