"""Unit tests for the access resolver."""

import asyncio

import pytest

from speak2chat.errors import (
    AccessDenied,
    MicrophoneDenied,
    SpeechDenied,
    SpeechRestricted,
)
from speak2chat.models.access import Denied, NeedsRequest, Ready, Restricted
from speak2chat.models.permissions import RecordPermission, SpeechAuthorizationStatus
from speak2chat.services.speech_permissions import decide_access, decision_for_error

from fakes import PermissionState

MIC = RecordPermission
SPEECH = SpeechAuthorizationStatus

MIC_DENIED = Denied(message=MicrophoneDenied.message, can_open_settings=True)
SPEECH_DENIED = Denied(message=SpeechDenied.message, can_open_settings=True)
RESTRICTED = Restricted(message=SpeechRestricted.message)


@pytest.mark.unit
class TestDecideAccess:
    """Precedence table for microphone x speech states."""

    @pytest.mark.parametrize("microphone,speech,expected", [
        (MIC.UNDETERMINED, SPEECH.NOT_DETERMINED, NeedsRequest()),
        (MIC.UNDETERMINED, SPEECH.DENIED, SPEECH_DENIED),
        (MIC.UNDETERMINED, SPEECH.RESTRICTED, RESTRICTED),
        (MIC.UNDETERMINED, SPEECH.AUTHORIZED, NeedsRequest()),
        (MIC.DENIED, SPEECH.NOT_DETERMINED, MIC_DENIED),
        (MIC.DENIED, SPEECH.DENIED, MIC_DENIED),
        (MIC.DENIED, SPEECH.RESTRICTED, RESTRICTED),
        (MIC.DENIED, SPEECH.AUTHORIZED, MIC_DENIED),
        (MIC.GRANTED, SPEECH.NOT_DETERMINED, NeedsRequest()),
        (MIC.GRANTED, SPEECH.DENIED, SPEECH_DENIED),
        (MIC.GRANTED, SPEECH.RESTRICTED, RESTRICTED),
        (MIC.GRANTED, SPEECH.AUTHORIZED, Ready()),
    ])
    def test_precedence(self, microphone, speech, expected):
        assert decide_access(microphone, speech) == expected

    def test_only_ready_is_ready(self):
        assert Ready().is_ready
        assert not NeedsRequest().is_ready
        assert not MIC_DENIED.is_ready

    def test_decision_for_errors(self):
        assert decision_for_error(SpeechRestricted()) == RESTRICTED
        assert decision_for_error(MicrophoneDenied()) == MIC_DENIED

        generic = decision_for_error(RuntimeError("boom"))
        assert generic == Denied(message="boom", can_open_settings=True)


@pytest.mark.unit
class TestSpeechPermissionsManager:
    """Test cases for SpeechPermissionsManager class."""

    def test_current_access_reads_application_permission(self, make_permissions):
        state = PermissionState(MIC.GRANTED, SPEECH.AUTHORIZED)
        manager, _, _ = make_permissions(state)

        assert manager.current_access() == Ready()

        state.speech = SPEECH.DENIED
        assert manager.current_access() == SPEECH_DENIED

    @pytest.mark.asyncio
    async def test_resolved_states_skip_the_gate(self, make_permissions, actions):
        for state, expected in [
            (PermissionState(MIC.GRANTED, SPEECH.AUTHORIZED), Ready()),
            (PermissionState(MIC.DENIED, SPEECH.AUTHORIZED), MIC_DENIED),
            (PermissionState(MIC.GRANTED, SPEECH.RESTRICTED), RESTRICTED),
        ]:
            manager, _, _ = make_permissions(state)
            assert await manager.request_if_needed() == expected
            assert not manager.permission_gate.running

        assert actions == []

    @pytest.mark.asyncio
    async def test_grants_both_permissions(self, make_permissions, actions, permission_state):
        manager, _, _ = make_permissions(permission_state)

        assert await manager.request_if_needed() == Ready()
        assert actions == ["request_microphone", "request_speech"]
        assert not manager.permission_gate.running

    @pytest.mark.asyncio
    async def test_answers_from_other_threads(self, make_permissions, actions, permission_state):
        manager, _, _ = make_permissions(permission_state, answer_on_thread=True)

        assert await manager.request_if_needed() == Ready()
        assert actions == ["request_microphone", "request_speech"]

    @pytest.mark.asyncio
    async def test_microphone_refused(self, make_permissions, actions, permission_state):
        manager, _, authorization = make_permissions(permission_state, grant_microphone=False)

        assert await manager.request_if_needed() == MIC_DENIED
        # Speech is never asked once the microphone is refused
        assert authorization.prompts == 0
        assert actions == ["request_microphone"]

    @pytest.mark.asyncio
    async def test_session_denied_microphone_fails_without_prompt(self, make_permissions, actions):
        state = PermissionState(MIC.UNDETERMINED, SPEECH.NOT_DETERMINED)
        manager, session, _ = make_permissions(state)
        # Application still undetermined while the session already knows
        session.state = PermissionState(MIC.DENIED, SPEECH.NOT_DETERMINED)

        assert await manager.request_if_needed() == MIC_DENIED
        assert session.microphone_prompts == 0

    @pytest.mark.asyncio
    async def test_speech_refused(self, make_permissions, permission_state):
        manager, _, _ = make_permissions(permission_state, speech_answer=SPEECH.DENIED)

        assert await manager.request_if_needed() == SPEECH_DENIED

    @pytest.mark.asyncio
    async def test_speech_restricted_after_prompt(self, make_permissions, permission_state):
        manager, _, _ = make_permissions(permission_state, speech_answer=SPEECH.RESTRICTED)

        decision = await manager.request_if_needed()

        assert decision == RESTRICTED
        assert isinstance(decision, Restricted)

    @pytest.mark.asyncio
    async def test_already_authorized_speech_is_not_prompted(self, make_permissions):
        state = PermissionState(MIC.UNDETERMINED, SPEECH.AUTHORIZED)
        manager, session, authorization = make_permissions(state)

        assert await manager.request_if_needed() == Ready()
        assert session.microphone_prompts == 1
        assert authorization.prompts == 0

    @pytest.mark.asyncio
    async def test_concurrent_requests_prompt_once(self, make_permissions, actions, permission_state):
        manager, session, authorization = make_permissions(permission_state)

        first, second = await asyncio.gather(
            manager.request_if_needed(),
            manager.request_if_needed(),
        )

        assert first == second == Ready()
        assert session.microphone_prompts == 1
        assert authorization.prompts == 1
        assert not manager.permission_gate.running
        assert manager.permission_gate.waiters == []

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_failure(self, make_permissions, permission_state):
        manager, session, _ = make_permissions(permission_state, grant_microphone=False)

        results = await asyncio.gather(*(manager.request_if_needed() for _ in range(3)))

        assert results == [MIC_DENIED] * 3
        assert session.microphone_prompts == 1

    @pytest.mark.asyncio
    async def test_provider_exception_is_absorbed(self, make_permissions, permission_state):
        manager, session, _ = make_permissions(permission_state)

        def broken(response):
            raise RuntimeError("audio service crashed")

        session.request_record_permission = broken

        decision = await manager.request_if_needed()

        assert decision == Denied(message="audio service crashed", can_open_settings=True)
        assert not manager.permission_gate.running

    @pytest.mark.asyncio
    async def test_cancelled_owner_releases_waiters(self, make_permissions, permission_state):
        manager, session, _ = make_permissions(permission_state)
        # Never answer so the owner stays suspended
        session.request_record_permission = lambda response: None

        owner = asyncio.ensure_future(manager.request_if_needed())
        await asyncio.sleep(0)
        joiner = asyncio.ensure_future(manager.request_if_needed())
        await asyncio.sleep(0)

        owner.cancel()
        with pytest.raises(asyncio.CancelledError):
            await owner

        assert await joiner == Denied(message=AccessDenied.message, can_open_settings=True)
        assert not manager.permission_gate.running
