"""Tests for FrameExtractor supervision: completion, stalls, cancellation and admission."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import psutil
import pytest

from stillframe.admission_gate import AdmissionGate
from stillframe.config.settings import ExtractionSettings
from stillframe.exceptions import ExtractionCancelledError, FfmpegError, ProcessLaunchError
from stillframe.frame_extractor import FAILED_EXIT_CODE, ExtractionRequest, FrameExtractor

PRODUCING_SCRIPT = """
import sys, time
from pathlib import Path

target = Path(sys.argv[1])
for index in range(int(sys.argv[2])):
    (target / f"img_{index:08d}.jpg").write_bytes(b"jpeg")
    time.sleep(float(sys.argv[3]))
sys.exit(int(sys.argv[4]))
"""

HANGING_SCRIPT = """
import signal, sys, time
from pathlib import Path

if sys.argv[2] == "ignore-term":
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
target = Path(sys.argv[1])
for index in range(int(sys.argv[3])):
    (target / f"img_{index:08d}.jpg").write_bytes(b"jpeg")
time.sleep(60)
"""


def _request(command, output_dir, **overrides) -> ExtractionRequest:
    options = {"poll_interval_seconds": 1.0, "termination_grace_seconds": 0.2}
    options.update(overrides)
    return ExtractionRequest(
        executable=command[0],
        arguments=command[1:],
        target_directory=output_dir,
        **options,
    )


def _extractor(capacity: int = 2) -> FrameExtractor:
    return FrameExtractor(ExtractionSettings(max_concurrent_extractions=capacity))


async def _wait_until(predicate, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class TestExtractionRequest:
    """Tests for ExtractionRequest validation and derived values."""

    def test_command_and_input_target(self, tmp_path) -> None:
        request = ExtractionRequest(executable="ffmpeg", arguments=["-i", "a b.mkv"], target_directory=str(tmp_path))

        assert request.command == ["ffmpeg", "-i", "a b.mkv"]
        assert request.command_line == "ffmpeg -i 'a b.mkv'"
        assert request.input_target == request.command_line
        assert request.target_directory == Path(tmp_path)
        assert request.poll_interval_seconds == 30.0
        assert request.output_extension == ".jpg"

    def test_description_overrides_input_target(self, tmp_path) -> None:
        request = ExtractionRequest("ffmpeg", [], tmp_path, description="file:/media/a.mkv")

        assert request.input_target == "file:/media/a.mkv"

    def test_rejects_non_positive_poll_interval(self, tmp_path) -> None:
        with pytest.raises(ValueError):
            ExtractionRequest("ffmpeg", [], tmp_path, poll_interval_seconds=0)


class TestRealProcesses:
    """End-to-end supervision of real child processes."""

    @pytest.mark.asyncio
    async def test_steady_progress_completes_without_kill(self, python_script, output_dir, caplog):
        command = python_script(PRODUCING_SCRIPT, str(output_dir), "12", "0.1", "0")
        extractor = _extractor()

        with caplog.at_level(logging.INFO):
            result = await extractor.extract_frames(_request(command, output_dir, poll_interval_seconds=2.0))

        assert result.exit_code == 0
        assert result.frame_count == 12
        assert result.elapsed_seconds > 0
        assert not any("Killing" in record.getMessage() for record in caplog.records)
        assert len(extractor.registry) == 0
        assert extractor.admission.in_use == 0

    @pytest.mark.asyncio
    async def test_natural_non_zero_exit_is_returned(self, python_script, output_dir):
        command = python_script(PRODUCING_SCRIPT, str(output_dir), "1", "0", "2")

        result = await _extractor().extract_frames(_request(command, output_dir))

        assert result.exit_code == 2
        assert result.frame_count == 1

    @pytest.mark.asyncio
    async def test_silent_process_is_killed_and_reported(self, python_script, output_dir, caplog):
        command = python_script(HANGING_SCRIPT, str(output_dir), "ignore-term", "0")
        extractor = _extractor()
        request = _request(command, output_dir, poll_interval_seconds=0.5, description="file:/media/stuck.mkv")

        with caplog.at_level(logging.INFO):
            with pytest.raises(FfmpegError) as exc_info:
                await extractor.extract_frames(request)

        assert "file:/media/stuck.mkv" in str(exc_info.value)
        assert exc_info.value.exit_code == FAILED_EXIT_CODE
        assert any("Killing" in record.getMessage() for record in caplog.records)
        assert any(record.levelno == logging.ERROR for record in caplog.records)
        assert len(extractor.registry) == 0
        assert extractor.admission.in_use == 0

    @pytest.mark.asyncio
    async def test_progress_then_silence_is_a_stall(self, python_script, output_dir):
        command = python_script(HANGING_SCRIPT, str(output_dir), "default", "3")
        extractor = _extractor()

        with pytest.raises(FfmpegError):
            await extractor.extract_frames(_request(command, output_dir, poll_interval_seconds=0.5))

        assert len(list(output_dir.glob("*.jpg"))) == 3
        assert extractor.admission.in_use == 0

    @pytest.mark.asyncio
    async def test_missing_executable_releases_slot(self, output_dir, tmp_path):
        extractor = _extractor(capacity=1)

        with pytest.raises(ProcessLaunchError):
            await extractor.extract_frames(_request([str(tmp_path / "no-ffmpeg")], output_dir))

        assert extractor.admission.in_use == 0
        assert len(extractor.registry) == 0

    @pytest.mark.asyncio
    async def test_argument_with_nul_byte_is_a_launch_error(self, output_dir):
        extractor = _extractor(capacity=1)

        with pytest.raises(ProcessLaunchError):
            await extractor.extract_frames(_request(["ffmpeg", "-i", "bad\x00name"], output_dir))

        assert extractor.admission.in_use == 0
        assert len(extractor.registry) == 0

    @pytest.mark.asyncio
    async def test_cancel_event_mid_loop_terminates_process(self, python_script, output_dir):
        command = python_script(HANGING_SCRIPT, str(output_dir), "default", "0")
        extractor = _extractor()
        cancel_event = asyncio.Event()
        request = _request(command, output_dir, poll_interval_seconds=30, cancel_event=cancel_event)

        task = asyncio.create_task(extractor.extract_frames(request))
        await _wait_until(lambda: any(snapshot.pid for snapshot in extractor.running_processes()))
        pid = extractor.running_processes()[0].pid
        started = asyncio.get_running_loop().time()
        cancel_event.set()

        with pytest.raises(ExtractionCancelledError):
            await task

        assert asyncio.get_running_loop().time() - started < 10
        assert extractor.admission.in_use == 0
        assert len(extractor.registry) == 0
        await _wait_until(lambda: not psutil.pid_exists(pid))

    @pytest.mark.asyncio
    async def test_task_cancellation_mid_loop_cleans_up(self, python_script, output_dir):
        command = python_script(HANGING_SCRIPT, str(output_dir), "default", "0")
        extractor = _extractor()

        task = asyncio.create_task(extractor.extract_frames(_request(command, output_dir, poll_interval_seconds=30)))
        await _wait_until(lambda: any(snapshot.pid for snapshot in extractor.running_processes()))
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert extractor.admission.in_use == 0
        assert len(extractor.registry) == 0


class TestAdmission:
    """Admission behavior with fake processes."""

    @pytest.mark.asyncio
    async def test_cancel_before_admission_starts_nothing(self, fake_spawner, output_dir):
        spawner = fake_spawner()
        extractor = _extractor(capacity=1)
        await extractor.admission.acquire()
        cancel_event = asyncio.Event()

        task = asyncio.create_task(extractor.extract_frames(_request(["ffmpeg"], output_dir, cancel_event=cancel_event)))
        await asyncio.sleep(0.01)
        cancel_event.set()

        with pytest.raises(ExtractionCancelledError):
            await task

        assert spawner.calls == []
        assert extractor.admission.in_use == 1
        extractor.admission.release()

    @pytest.mark.asyncio
    async def test_third_invocation_waits_for_a_free_slot(self, fake_spawner, output_dir):
        spawner = fake_spawner()
        extractor = _extractor(capacity=2)

        tasks = [
            asyncio.create_task(extractor.extract_frames(_request(["ffmpeg", str(index)], output_dir, poll_interval_seconds=30)))
            for index in range(3)
        ]
        await _wait_until(lambda: len(spawner.calls) == 2)
        await asyncio.sleep(0.05)
        assert len(spawner.calls) == 2
        assert extractor.admission.in_use == 2

        spawner.transports[0].finish(0)
        await _wait_until(lambda: len(spawner.calls) == 3)

        spawner.transports[1].finish(0)
        spawner.transports[2].finish(0)
        results = await asyncio.wait_for(asyncio.gather(*tasks), 5)

        assert [result.exit_code for result in results] == [0, 0, 0]
        assert extractor.admission.in_use == 0
        assert len(extractor.registry) == 0

    @pytest.mark.asyncio
    async def test_stall_verdict_wins_over_exit_code_seen_during_termination(self, fake_spawner, output_dir):
        spawner = fake_spawner()
        spawner.transport_options = {"exit_on_terminate": True}
        extractor = _extractor()

        with pytest.raises(FfmpegError) as exc_info:
            await extractor.extract_frames(_request(["ffmpeg"], output_dir, poll_interval_seconds=0.01))

        assert spawner.transports[0].returncode == -15
        assert exc_info.value.exit_code == FAILED_EXIT_CODE

    @pytest.mark.asyncio
    async def test_unknown_exit_code_counts_as_success(self, fake_spawner, output_dir, monkeypatch):
        spawner = fake_spawner()
        extractor = _extractor()

        task = asyncio.create_task(extractor.extract_frames(_request(["ffmpeg"], output_dir, poll_interval_seconds=30)))
        await _wait_until(lambda: spawner.transports)
        transport = spawner.transports[0]
        monkeypatch.setattr(transport, "get_returncode", lambda: None)
        transport.finish(0)

        result = await asyncio.wait_for(task, 5)

        assert result.exit_code == 0

    @pytest.mark.asyncio
    async def test_unlistable_target_is_reported_as_a_stall(self, fake_spawner, tmp_path):
        fake_spawner()
        not_a_directory = tmp_path / "frames"
        not_a_directory.write_bytes(b"")
        extractor = _extractor()

        with pytest.raises(FfmpegError):
            await extractor.extract_frames(
                _request(["ffmpeg"], not_a_directory, poll_interval_seconds=0.01, termination_grace_seconds=0.01)
            )

        assert extractor.admission.in_use == 0
        assert len(extractor.registry) == 0


class TestIntervalExtraction:
    """Tests for extract_video_images_on_interval."""

    @pytest.mark.asyncio
    async def test_builds_command_and_creates_target_directory(self, fake_spawner, tmp_path):
        spawner = fake_spawner()
        settings = ExtractionSettings(ffmpeg_path="/usr/bin/ffmpeg", thread_count=4)
        extractor = FrameExtractor(settings, admission=AdmissionGate(1))
        target = tmp_path / "trickplay" / "movie"

        task = asyncio.create_task(
            extractor.extract_video_images_on_interval(
                "/media/movie.mkv",
                container="mkv",
                interval_seconds=10,
                target_directory=target,
                filename_prefix="img_",
                max_width=320,
            )
        )
        await _wait_until(lambda: spawner.transports)
        spawner.transports[0].finish(0)
        result = await asyncio.wait_for(task, 5)

        assert target.is_dir()
        assert result.exit_code == 0
        assert list(spawner.calls[0]) == [
            "/usr/bin/ffmpeg",
            "-f",
            "matroska",
            "-i",
            "file:/media/movie.mkv",
            "-threads",
            "4",
            "-v",
            "quiet",
            "-filter:v",
            "fps=1/10,scale=min(iw\\,320):trunc(ow/dar/2)*2",
            "-f",
            "image2",
            str(target / "img_%08d.jpg"),
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("interval", "max_width"), [(0, None), (10, 0)])
    async def test_rejected_arguments_leave_no_directory(self, fake_spawner, tmp_path, interval, max_width):
        spawner = fake_spawner()
        target = tmp_path / "trickplay" / "movie"

        with pytest.raises(ValueError):
            await _extractor().extract_video_images_on_interval(
                "/media/movie.mkv",
                interval_seconds=interval,
                target_directory=target,
                filename_prefix="img_",
                max_width=max_width,
            )

        assert not (tmp_path / "trickplay").exists()
        assert spawner.calls == []

    @pytest.mark.asyncio
    async def test_failure_message_names_input(self, fake_spawner, tmp_path):
        fake_spawner()
        settings = ExtractionSettings(poll_interval_seconds=0.01, termination_grace_seconds=0.01)
        extractor = FrameExtractor(settings)

        with pytest.raises(FfmpegError, match="ffmpeg image extraction failed for file:/media/clip.mp4"):
            await extractor.extract_video_images_on_interval(
                "/media/clip.mp4",
                interval_seconds=1,
                target_directory=tmp_path / "out",
                filename_prefix="",
            )


def test_default_settings_are_used(monkeypatch):
    monkeypatch.setenv("STILLFRAME_MAX_CONCURRENT_EXTRACTIONS", "3")

    extractor = FrameExtractor()

    assert extractor.admission.capacity == 3
