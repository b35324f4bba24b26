import random
import threading

from interview_coach.interview.models import AudioState
from interview_coach.interview.services import AudioPipeline
from interview_coach.interview.testing import (
    FakeLLMClient, RecordingPlayer, ImmediateExecutor, ManualExecutor, make_speech_payload
)
from interview_coach.infrastructure.llm import SpeechPayload


def _pipeline(speech=None, executor=None):
    client = FakeLLMClient(speech=speech if speech is not None else make_speech_payload())
    player = RecordingPlayer()
    changes = []
    pipeline = AudioPipeline(
        client, player, executor=executor or ImmediateExecutor(),
        on_state_change=lambda idx, state: changes.append((idx, state)),
    )
    return pipeline, player, changes


def _playing(pipeline):
    return [idx for idx, state in pipeline.states().items() if state is AudioState.PLAYING]


def test_synthesize_returns_wav_bytes():
    pipeline, _, _ = _pipeline()

    wav = pipeline.synthesize("Hello")

    assert wav[:4] == b"RIFF"


def test_synthesize_without_usable_audio_returns_none():
    assert _pipeline(speech=SpeechPayload("AAAA", "audio/mpeg"))[0].synthesize("hi") is None

    pipeline = AudioPipeline(FakeLLMClient(speech=None), RecordingPlayer(), executor=ImmediateExecutor())
    assert pipeline.synthesize("hi") is None


def test_prepare_with_autoplay_plays_when_ready():
    pipeline, player, changes = _pipeline()

    future = pipeline.prepare(0, "Question one")

    assert future.result() is True
    assert pipeline.state(0) is AudioState.PLAYING
    assert len(player.played) == 1
    assert changes == [(0, AudioState.PENDING), (0, AudioState.READY), (0, AudioState.PLAYING)]


def test_prepare_without_autoplay_only_readies():
    pipeline, player, _ = _pipeline()

    pipeline.prepare(0, "Question one", autoplay=False)

    assert pipeline.state(0) is AudioState.READY
    assert player.played == []


def test_missing_audio_still_becomes_ready():
    pipeline = AudioPipeline(FakeLLMClient(speech=None), RecordingPlayer(), executor=ImmediateExecutor())

    assert pipeline.prepare(0, "Q").result() is False
    assert pipeline.state(0) is AudioState.READY
    assert not pipeline.has_audio(0)
    assert pipeline.play(0) is False


def test_synthesis_errors_do_not_escape():
    class _Broken(FakeLLMClient):
        def synthesize_speech(self, text):
            raise RuntimeError("socket closed")

    pipeline = AudioPipeline(_Broken(), RecordingPlayer(), executor=ImmediateExecutor())

    assert pipeline.prepare(0, "Q").result() is False
    assert pipeline.state(0) is AudioState.READY


def test_pending_state_while_synthesizing():
    executor = ManualExecutor()
    pipeline, _, _ = _pipeline(executor=executor)

    pipeline.prepare(0, "Q")
    assert pipeline.state(0) is AudioState.PENDING

    executor.run_all()
    assert pipeline.state(0) is AudioState.PLAYING


def test_playing_another_turn_stops_the_current_one():
    pipeline, player, _ = _pipeline()
    pipeline.prepare(0, "Q0", autoplay=False)
    pipeline.prepare(2, "Q2", autoplay=False)

    assert pipeline.play(0)
    assert pipeline.play(2)

    assert pipeline.state(0) is AudioState.READY
    assert pipeline.state(2) is AudioState.PLAYING
    assert pipeline.playing_turn == 2
    assert player.stop_calls >= 2


def test_at_most_one_turn_playing_under_random_operations():
    pipeline, player, _ = _pipeline()
    for idx in (0, 2, 4, 6):
        pipeline.prepare(idx, f"Q{idx}", autoplay=False)

    rng = random.Random(7)
    for _ in range(200):
        op = rng.choice(["play", "play", "stop", "finish"])
        if op == "play":
            pipeline.play(rng.choice([0, 2, 4, 6]))
        elif op == "stop":
            pipeline.stop()
        else:
            player.finish_next()
        assert len(_playing(pipeline)) <= 1


def test_stale_completion_callback_is_ignored():
    pipeline, player, _ = _pipeline()
    pipeline.prepare(0, "Q0", autoplay=False)
    pipeline.prepare(2, "Q2", autoplay=False)
    pipeline.play(0)
    pipeline.play(2)

    player.finish_next()
    assert pipeline.state(2) is AudioState.PLAYING

    player.finish_next()
    assert pipeline.state(2) is AudioState.READY
    assert pipeline.playing_turn is None


def test_stop_cancels_pending_autoplay():
    executor = ManualExecutor()
    pipeline, player, _ = _pipeline(executor=executor)

    pipeline.prepare(0, "Q0")
    pipeline.stop()
    executor.run_all()

    assert pipeline.state(0) is AudioState.READY
    assert player.played == []


def test_newer_prepare_supersedes_older_autoplay():
    executor = ManualExecutor()
    pipeline, player, _ = _pipeline(executor=executor)

    pipeline.prepare(0, "Q0")
    pipeline.prepare(2, "Q2")
    executor.run_all()

    assert pipeline.state(0) is AudioState.READY
    assert pipeline.state(2) is AudioState.PLAYING
    assert len(player.played) == 1


def test_shutdown_stops_playback():
    pipeline, _, _ = _pipeline()
    pipeline.prepare(0, "Q0")

    pipeline.shutdown()

    assert pipeline.state(0) is AudioState.READY


def test_listener_errors_are_contained():
    def explode(idx, state):
        raise RuntimeError("listener bug")

    pipeline = AudioPipeline(FakeLLMClient(speech=make_speech_payload()), RecordingPlayer(),
                             executor=ImmediateExecutor(), on_state_change=explode)

    pipeline.prepare(0, "Q0")

    assert pipeline.state(0) is AudioState.PLAYING


class _PerTextClient(FakeLLMClient):
    def synthesize_speech(self, text):
        self.speech_requests.append(text)
        return make_speech_payload((0, len(text), -len(text)))


class _GatedPlayer(RecordingPlayer):
    """Blocks inside the first stop() until released."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()
        self._gated = True

    def stop(self):
        if self._gated:
            self._gated = False
            self.entered.set()
            self.release.wait(timeout=5)
        super().stop()


def test_concurrent_plays_leave_state_matching_the_player():
    player = _GatedPlayer()
    pipeline = AudioPipeline(_PerTextClient(), player, executor=ImmediateExecutor())
    pipeline.prepare(0, "Q0", autoplay=False)
    pipeline.prepare(2, "Question two", autoplay=False)
    wav_two = pipeline.synthesize("Question two")

    first = threading.Thread(target=pipeline.play, args=(0,))
    first.start()
    assert player.entered.wait(timeout=5)

    second = threading.Thread(target=pipeline.play, args=(2,))
    second.start()
    second.join(timeout=0.2)
    player.release.set()
    first.join(timeout=5)
    second.join(timeout=5)

    assert pipeline.playing_turn == 2
    assert player.played[-1] == wav_two
    assert _playing(pipeline) == [2]


def test_autoplay_waiting_behind_a_play_is_cancelled_by_stop():
    player = _GatedPlayer()
    executor = ManualExecutor()
    pipeline = AudioPipeline(_PerTextClient(), player, executor=executor)
    pipeline.prepare(0, "Q0", autoplay=False)
    executor.run_all()
    pipeline.prepare(2, "Question two", autoplay=True)

    replay = threading.Thread(target=pipeline.play, args=(0,))
    replay.start()
    assert player.entered.wait(timeout=5)

    autoplay = threading.Thread(target=executor.run_all)
    autoplay.start()
    autoplay.join(timeout=0.2)
    stopper = threading.Thread(target=pipeline.stop)
    stopper.start()
    stopper.join(timeout=0.2)
    player.release.set()
    for thread in (replay, autoplay, stopper):
        thread.join(timeout=5)

    assert pipeline.playing_turn is None
    assert _playing(pipeline) == []
