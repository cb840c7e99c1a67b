"""Tests for TerminalSurface: drop-to-type, init failure and teardown."""

from __future__ import annotations

import asyncio

import pytest

from termy.engine.config import TermyConfig
from termy.engine.errors import SessionInitError, SessionNotInitializedError
from termy.engine.surface import NO_USABLE_PATH_NOTICE, TerminalSurface
from termy.shared.models.drop import URI_LIST, DropPayload
from termy.shared.models.platform import Platform
from termy.shared.path_resolver import PathResolver


class _DummySession:
    def __init__(self, session_id: str = "s-1", title: str = "dummy") -> None:
        self.id = session_id
        self.title = title
        self.written: list[str] = []
        self.focus_calls = 0
        self.alive = True

    def write(self, text: str) -> None:
        self.written.append(text)

    def is_alive(self) -> bool:
        return self.alive

    def focus(self) -> None:
        self.focus_calls += 1


class _DummyService:
    def __init__(self, *, error: BaseException | None = None, gated: bool = False) -> None:
        self.error = error
        self.gate = asyncio.Event()
        if not gated:
            self.gate.set()
        self.created: list[_DummySession] = []
        self.destroyed: list[str] = []

    async def create_session(self) -> _DummySession:
        await self.gate.wait()
        if self.error is not None:
            raise self.error
        session = _DummySession(f"s-{len(self.created) + 1}")
        self.created.append(session)
        return session

    async def destroy_session(self, session_id: str) -> None:
        self.destroyed.append(session_id)


class _Recorder:
    def __init__(self) -> None:
        self.notices: list[str] = []
        self.detaches = 0

    def notice(self, message: str) -> None:
        self.notices.append(message)

    async def detach(self) -> None:
        self.detaches += 1


async def _drain() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def _surface(service: _DummyService, recorder: _Recorder, **kwargs) -> TerminalSurface:
    return TerminalSurface(
        service,
        PathResolver(None, Platform.POSIX),
        init_timeout=1.0,
        notice=recorder.notice,
        detach=recorder.detach,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_drop_writes_quoted_paths_and_focuses() -> None:
    service, recorder = _DummyService(), _Recorder()
    surface = _surface(service, recorder)
    await surface.open()
    session = await surface.wait_for_ready(1.0)

    payload = DropPayload(texts={URI_LIST: "file:///home/u/a.md\nfile:///home/u/b%20c.md"})
    text = await surface.handle_drop(payload)

    assert text == '"/home/u/a.md" "/home/u/b c.md"'
    assert session.written == [text]
    assert session.focus_calls == 1
    assert recorder.notices == []


@pytest.mark.asyncio
async def test_drop_before_ready_waits_for_session() -> None:
    service, recorder = _DummyService(gated=True), _Recorder()
    surface = _surface(service, recorder)
    await surface.open()

    drop = asyncio.create_task(surface.handle_drop(DropPayload.from_text("/tmp/x.txt")))
    await _drain()
    assert not drop.done()

    service.gate.set()
    assert await drop == '"/tmp/x.txt"'
    assert service.created[0].written == ['"/tmp/x.txt"']


@pytest.mark.asyncio
async def test_unusable_drop_posts_notice() -> None:
    service, recorder = _DummyService(), _Recorder()
    surface = _surface(service, recorder)
    await surface.open()
    session = await surface.wait_for_ready(1.0)

    assert await surface.handle_drop(DropPayload.from_text("just some words")) == ""
    assert await surface.handle_drop(None) == ""
    assert recorder.notices == [NO_USABLE_PATH_NOTICE, NO_USABLE_PATH_NOTICE]
    assert session.written == []


@pytest.mark.asyncio
async def test_open_is_idempotent() -> None:
    service, recorder = _DummyService(), _Recorder()
    surface = _surface(service, recorder)
    await surface.open()
    await surface.open()
    await surface.wait_for_ready(1.0)
    await _drain()
    assert len(service.created) == 1


@pytest.mark.asyncio
async def test_init_failure_notifies_and_detaches_once() -> None:
    service = _DummyService(error=SessionInitError("shell 'nope' not found"))
    recorder = _Recorder()
    surface = _surface(service, recorder)
    await surface.open()

    with pytest.raises(SessionInitError):
        await surface.wait_for_ready(1.0)
    await _drain()

    assert recorder.notices == ["Terminal initialization failed: shell 'nope' not found"]
    assert recorder.detaches == 1
    assert surface.detached

    # Later drops resolve but have nowhere to go
    assert await surface.handle_drop(DropPayload.from_text("/tmp/x.txt")) == '"/tmp/x.txt"'
    assert await surface.write_input("ls") is False
    assert recorder.detaches == 1


@pytest.mark.asyncio
async def test_unexpected_factory_error_is_wrapped() -> None:
    service = _DummyService(error=OSError("pty exhausted"))
    recorder = _Recorder()
    surface = _surface(service, recorder)
    await surface.open()

    with pytest.raises(SessionInitError) as exc_info:
        await surface.wait_for_ready(1.0)
    assert exc_info.value.reason == "pty exhausted"


@pytest.mark.asyncio
async def test_write_times_out_without_session() -> None:
    service, recorder = _DummyService(gated=True), _Recorder()
    surface = TerminalSurface(
        service,
        PathResolver(None, Platform.POSIX),
        init_timeout=0.02,
        notice=recorder.notice,
    )
    await surface.open()
    assert await surface.write_input("echo hi") is False

    service.gate.set()
    await _drain()
    assert await surface.write_input("echo hi") is True
    assert service.created[0].written == ["echo hi"]


@pytest.mark.asyncio
async def test_close_destroys_session_and_releases_waiters() -> None:
    service, recorder = _DummyService(), _Recorder()
    ready: list[_DummySession] = []
    surface = _surface(service, recorder, on_ready=ready.append)
    await surface.open()
    session = await surface.wait_for_ready(1.0)
    assert ready == [session]
    assert surface.title == "dummy"

    await surface.close()
    await surface.close()
    assert service.destroyed == [session.id]
    assert surface.session is None
    with pytest.raises(SessionNotInitializedError):
        await surface.wait_for_ready(0.01)


@pytest.mark.asyncio
async def test_close_during_initialization_disposes_late_session() -> None:
    service, recorder = _DummyService(gated=True), _Recorder()
    surface = _surface(service, recorder)
    await surface.open()
    await _drain()

    await surface.close()
    service.gate.set()
    await _drain()

    assert [s.id for s in service.created] == service.destroyed
    assert len(service.destroyed) == 1
    assert recorder.notices == []


@pytest.mark.asyncio
async def test_from_config_builds_vault_resolver(tmp_path) -> None:
    (tmp_path / "Projects").mkdir()
    (tmp_path / "Projects" / "Plan.md").write_text("# Plan\n")
    config = TermyConfig(vault_path=str(tmp_path), platform="posix", init_timeout_seconds=1.0)

    service, recorder = _DummyService(), _Recorder()
    surface = TerminalSurface.from_config(config, service, notice=recorder.notice)
    await surface.open()
    session = await surface.wait_for_ready()

    await surface.handle_drop(DropPayload.from_text("[[Plan]]"))
    expected = tmp_path.resolve() / "Projects" / "Plan.md"
    assert session.written == [f'"{expected}"']


@pytest.mark.asyncio
async def test_write_to_exited_session_is_dropped() -> None:
    service, recorder = _DummyService(), _Recorder()
    surface = _surface(service, recorder)
    await surface.open()
    session = await surface.wait_for_ready(1.0)
    session.alive = False

    assert await surface.write_input("ls\n") is False
    assert session.written == []
    assert session.focus_calls == 0


@pytest.mark.asyncio
async def test_paste_of_paths_is_quoted() -> None:
    service, recorder = _DummyService(), _Recorder()
    surface = _surface(service, recorder)
    await surface.open()
    session = await surface.wait_for_ready(1.0)

    text = await surface.handle_paste("file:///home/u/a.md\n/home/u/b c.md\n")
    assert text == '"/home/u/a.md" "/home/u/b c.md"'
    assert session.written == [text]


@pytest.mark.asyncio
async def test_paste_of_commands_is_typed_unchanged() -> None:
    service, recorder = _DummyService(), _Recorder()
    surface = _surface(service, recorder)
    await surface.open()
    session = await surface.wait_for_ready(1.0)

    assert await surface.handle_paste("git status") == "git status"
    # One line names a file, the other does not: still ordinary input
    assert await surface.handle_paste("cat /etc/hosts\n/etc/hosts") == "cat /etc/hosts\n/etc/hosts"
    assert await surface.handle_paste("") == ""
    assert session.written == ["git status", "cat /etc/hosts\n/etc/hosts"]
    assert recorder.notices == []
