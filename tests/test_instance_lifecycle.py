"""
Tests for the recurring instance status state machine
"""
import pytest
from types import SimpleNamespace
from services import instance_lifecycle as lifecycle
from services.errors import StateError


def make_instance(status='scheduled', job_id=None):
    return SimpleNamespace(id='inst-1', status=status, job_id=job_id, updated_at=None)


@pytest.mark.unit
class TestTransitionTable:
    """Tests for the allowed transitions"""

    @pytest.mark.parametrize('current,target,action', [
        ('scheduled', 'created', 'convert'),
        ('scheduled', 'skipped', 'skip'),
        ('skipped', 'scheduled', 'reactivate'),
        ('scheduled', 'cancelled', 'cancel'),
    ])
    def test_allowed(self, current, target, action):
        assert lifecycle.can_transition(current, target)
        assert lifecycle.action_for(current, target) == action

    @pytest.mark.parametrize('current,target', [
        ('created', 'scheduled'),
        ('created', 'skipped'),
        ('cancelled', 'scheduled'),
        ('skipped', 'created'),
        ('skipped', 'cancelled'),
        ('scheduled', 'scheduled'),
    ])
    def test_forbidden(self, current, target):
        assert not lifecycle.can_transition(current, target)
        assert lifecycle.action_for(current, target) is None


@pytest.mark.unit
class TestTransition:
    """Tests for applying transitions to a row"""

    def test_convert_sets_job_id(self):
        instance = make_instance()
        assert lifecycle.transition(instance, 'created', job_id='job-9') == 'convert'
        assert instance.status == 'created'
        assert instance.job_id == 'job-9'
        assert instance.updated_at is not None

    def test_convert_requires_job_id(self):
        instance = make_instance()
        with pytest.raises(StateError):
            lifecycle.transition(instance, 'created')
        assert instance.status == 'scheduled'
        assert instance.job_id is None

    def test_job_id_rejected_for_other_targets(self):
        instance = make_instance()
        with pytest.raises(StateError):
            lifecycle.transition(instance, 'skipped', job_id='job-9')
        assert instance.status == 'scheduled'

    def test_skip_and_reactivate(self):
        instance = make_instance()
        lifecycle.transition(instance, 'skipped')
        assert instance.status == 'skipped'
        lifecycle.transition(instance, 'scheduled')
        assert instance.status == 'scheduled'
        assert instance.job_id is None

    def test_created_is_terminal(self):
        instance = make_instance('created', job_id='job-1')
        with pytest.raises(StateError) as exc:
            lifecycle.transition(instance, 'skipped')
        assert 'created' in exc.value.message
        assert instance.job_id == 'job-1'

    def test_cannot_convert_twice(self):
        instance = make_instance('created', job_id='job-1')
        with pytest.raises(StateError):
            lifecycle.ensure_transition(instance, 'created')

    def test_scheduled_with_stray_job_id_cannot_convert(self):
        instance = make_instance('scheduled', job_id='job-1')
        with pytest.raises(StateError):
            lifecycle.ensure_transition(instance, 'created')
