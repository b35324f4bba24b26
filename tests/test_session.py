import threading

import pytest

from interview_coach.infrastructure.llm import GatewayError
from interview_coach.interview import InterviewMetrics
from interview_coach.interview.models import AudioState, SessionStatus, Speaker, count_speaker
from interview_coach.interview.orchestrator import InterviewSession
from interview_coach.interview.testing import FakeLLMClient

REFINED = "**FEEDBACK:** Quantify the impact.\n**REFINED ANSWER:** I cut latency by 30%."


def _assert_alternation(session):
    turns = session.transcript
    diff = count_speaker(turns, Speaker.INTERVIEWER) - count_speaker(turns, Speaker.CANDIDATE)
    assert diff in (0, 1)


def test_start_asks_the_first_question(fake_session):
    fakes = fake_session(["Why do you want this job?"], turn_limit=3)
    session = fakes["session"]

    assert session.status is SessionStatus.AWAITING_NEXT_QUESTION
    turn = session.start()

    assert turn.text == "Why do you want this job?"
    assert turn.speaker is Speaker.INTERVIEWER
    assert session.status is SessionStatus.COLLECTING
    request = fakes["llm_client"].text_requests[0]
    assert "The current question number is 1 out of 3." in request["system_instruction"]
    assert "start of the interview" in request["prompt_parts"][0]


def test_start_twice_is_a_no_op(fake_session):
    fakes = fake_session()
    session = fakes["session"]

    session.start()
    assert session.start() is None
    assert len(fakes["llm_client"].text_requests) == 1
    assert len(session.transcript) == 1


@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
def test_blank_answers_are_rejected(fake_session, text):
    session = fake_session()["session"]
    session.start()

    assert session.submit_answer(text) is False
    assert len(session.transcript) == 1
    assert session.status is SessionStatus.COLLECTING


def test_answer_before_first_question_is_rejected(fake_session):
    session = fake_session()["session"]

    assert session.submit_answer("hello") is False
    assert session.transcript == []


def test_full_interview_reaches_assessment_at_quota(fake_session, assessment_json):
    fakes = fake_session(["Q1", "Q2", assessment_json], turn_limit=2)
    session, client = fakes["session"], fakes["llm_client"]

    session.start()
    _assert_alternation(session)
    assert session.submit_answer("  A1  ")
    _assert_alternation(session)
    assert session.status is SessionStatus.COLLECTING
    assert "The current question number is 2 out of 2." in client.text_requests[1]["system_instruction"]
    assert "Interviewer: Q1\nCandidate: A1" in client.text_requests[1]["prompt_parts"][0]

    assert session.submit_answer("A2")
    _assert_alternation(session)

    assert session.status is SessionStatus.COMPLETE
    assert [t.text for t in session.transcript] == ["Q1", "A1", "Q2", "A2"]
    assert session.assessment.overall_score == "3.5"
    assert client.text_requests[2]["response_format"] is not None
    assert len(client.text_requests) == 3
    assert fakes["recorder"].types()[-1] == "assessment_completed"


def test_no_answers_accepted_after_completion(fake_session):
    session = fake_session(turn_limit=1)["session"]
    session.start()
    session.submit_answer("only answer")

    assert session.status is SessionStatus.COMPLETE
    assert session.submit_answer("another") is False
    assert session.end_interview_early() is False
    assert len(session.transcript) == 2


def test_end_early_assesses_the_transcript_so_far(fake_session, assessment_json):
    fakes = fake_session(["Q1", "Q2", assessment_json], turn_limit=5)
    session = fakes["session"]
    session.start()
    session.submit_answer("A1")

    assert session.end_interview_early() is True

    assert session.status is SessionStatus.COMPLETE
    assert session.assessment.overall_score == "3.5"
    assert "Candidate: A1" in fakes["llm_client"].text_requests[-1]["prompt_parts"][0]
    assert "interview_ended_early" in fakes["recorder"].types()
    assert session.end_interview_early() is False


def test_question_arriving_after_early_end_is_discarded(fake_session, assessment_json):
    fakes = fake_session(["Q1", "late question", assessment_json], turn_limit=5)
    session, client = fakes["session"], fakes["llm_client"]
    session.start()

    calls = {"n": 0}

    def end_while_in_flight():
        calls["n"] += 1
        if calls["n"] == 1:
            assert session.end_interview_early()

    client.on_text_request = end_while_in_flight
    assert session.submit_answer("A1")

    assert [t.text for t in session.transcript] == ["Q1", "A1"]
    assert session.status is SessionStatus.COMPLETE
    assert session.assessment.overall_score == "3.5"
    assert "stale_response_discarded" in fakes["recorder"].types()


def test_early_end_from_another_thread_does_not_wait(assessment_json):
    entered = threading.Event()
    release = threading.Event()
    client = FakeLLMClient(["Q1", "late question", assessment_json])
    session = InterviewSession(client, role="Software Engineer", turn_limit=5)
    session.start()

    def block_question():
        if len(client.text_requests) == 2:
            entered.set()
            release.wait(5)

    client.on_text_request = block_question
    worker = threading.Thread(target=session.submit_answer, args=("A1",))
    worker.start()
    assert entered.wait(5)

    assert session.status is SessionStatus.AWAITING_NEXT_QUESTION
    assert session.snapshot().busy
    assert session.end_interview_early()
    assert session.status is SessionStatus.COMPLETE

    release.set()
    worker.join(5)
    assert [t.text for t in session.transcript] == ["Q1", "A1"]


def test_failed_question_generation_appends_placeholder(fake_session):
    fakes = fake_session([GatewayError("Gemini API request failed after multiple retries", attempts=3)])
    session = fakes["session"]

    turn = session.start()

    assert turn.text.startswith("Error: Failed to generate the next question")
    assert session.status is SessionStatus.COLLECTING
    assert "error_occurred" in fakes["recorder"].types()
    assert session.submit_answer("I will answer anyway")
    assert session.status is SessionStatus.COLLECTING


def test_blank_question_is_treated_as_failure(fake_session):
    session = fake_session(["   "])["session"]

    assert session.start().text.startswith("Error: Failed to generate the next question")


def test_refinement_accept_replaces_draft(fake_session):
    fakes = fake_session(["Q1", REFINED])
    session = fakes["session"]
    session.start()
    session.update_draft("I made it faster")

    draft = session.request_refinement()

    assert draft.critique == "Quantify the impact."
    assert session.snapshot().refinement == draft
    assert session.accept_refined()
    snap = session.snapshot()
    assert snap.draft_text == "I cut latency by 30%."
    assert snap.refinement is None
    assert "refinement_offered" in fakes["recorder"].types()


def test_refinement_dismiss_keeps_draft(fake_session):
    session = fake_session(["Q1", REFINED])["session"]
    session.start()
    session.update_draft("I made it faster")
    session.request_refinement()

    assert session.dismiss_refinement()
    snap = session.snapshot()
    assert snap.draft_text == "I made it faster"
    assert snap.refinement is None
    assert session.accept_refined() is False


def test_submit_discards_open_refinement(fake_session):
    session = fake_session(["Q1", REFINED, "Q2"])["session"]
    session.start()
    session.update_draft("draft")
    session.request_refinement()

    assert session.submit_answer("final answer")

    snap = session.snapshot()
    assert snap.refinement is None
    assert snap.draft_text == ""
    assert snap.turns[1].text == "final answer"


def test_refinement_needs_a_draft(fake_session):
    fakes = fake_session()
    session = fakes["session"]
    session.start()

    assert session.request_refinement() is None
    assert len(fakes["llm_client"].text_requests) == 1


def test_answers_rejected_while_refinement_in_flight(fake_session):
    fakes = fake_session(["Q1", REFINED])
    session, client = fakes["session"], fakes["llm_client"]
    session.start()
    session.update_draft("draft")
    observed = {}

    def try_while_busy():
        observed["submit"] = session.submit_answer("sneaky")
        observed["refine"] = session.request_refinement()
        observed["busy"] = session.snapshot().busy

    client.on_text_request = try_while_busy
    assert session.request_refinement() is not None

    assert observed == {"submit": False, "refine": None, "busy": True}
    assert len(session.transcript) == 1


def test_refinement_after_early_end_is_discarded(fake_session):
    fakes = fake_session(["Q1", REFINED])
    session, client = fakes["session"], fakes["llm_client"]
    session.start()
    session.update_draft("draft")
    calls = {"n": 0}

    def end_first_time():
        calls["n"] += 1
        if calls["n"] == 1:
            session.end_interview_early()

    client.on_text_request = end_first_time

    assert session.request_refinement() is None
    assert session.snapshot().refinement is None
    assert session.status is SessionStatus.COMPLETE


def test_draft_updates_only_while_collecting(fake_session):
    session = fake_session()["session"]

    assert session.update_draft("early") is False
    session.start()
    assert session.update_draft("now")
    assert session.snapshot().draft_text == "now"


def test_progress_in_snapshot(fake_session):
    session = fake_session(["Q1", "Q2", "Q3"], turn_limit=3)["session"]
    session.start()
    assert session.snapshot().current_question_number == 1

    session.submit_answer("A1")
    snap = session.snapshot()
    assert snap.answered_count == 1
    assert snap.current_question_number == 2
    assert snap.last_question.text == "Q2"


def test_metrics_follow_the_session(fake_session, assessment_json):
    fakes = fake_session(["Q1", assessment_json], turn_limit=1)
    metrics = InterviewMetrics()
    fakes["event_bus"].subscribe_all(metrics.handle_event)
    session = fakes["session"]

    session.start()
    session.submit_answer("A1")

    counts = metrics.get_metrics()
    assert counts["sessions_started"] == 1
    assert counts["questions_asked"] == 1
    assert counts["answers_submitted"] == 1
    assert counts["assessments_completed"] == 1
    assert counts["errors_occurred"] == 0


def test_questions_autoplay_and_answers_stop_audio(fake_session):
    fakes = fake_session(["Q1", "Q2"], with_audio=True, autoplay=True)
    session, player = fakes["session"], fakes["player"]

    session.start()
    assert session.snapshot().audio_states == {0: AudioState.PLAYING}

    session.submit_answer("A1")

    states = session.snapshot().audio_states
    assert states == {0: AudioState.READY, 2: AudioState.PLAYING}
    assert len(player.played) == 2
    assert fakes["llm_client"].speech_requests == ["Q1", "Q2"]


def test_replay_only_for_interviewer_turns(fake_session):
    fakes = fake_session(["Q1", "Q2"], with_audio=True, autoplay=False)
    session = fakes["session"]
    session.start()
    session.submit_answer("A1")

    assert session.play_audio(0)
    assert session.play_audio(1) is False
    assert session.play_audio(7) is False
    assert session.snapshot().audio_states[0] is AudioState.PLAYING

    session.stop_audio()
    assert AudioState.PLAYING not in session.snapshot().audio_states.values()


def test_placeholder_questions_get_no_audio(fake_session):
    fakes = fake_session([GatewayError("down", attempts=3)], with_audio=True, autoplay=True)
    session = fakes["session"]

    session.start()

    assert session.snapshot().audio_states == {}
    assert fakes["llm_client"].speech_requests == []


def test_completion_stops_audio(fake_session):
    fakes = fake_session(["Q1"], turn_limit=1, with_audio=True, autoplay=True)
    session = fakes["session"]
    session.start()

    session.submit_answer("A1")

    assert session.status is SessionStatus.COMPLETE
    assert AudioState.PLAYING not in session.snapshot().audio_states.values()


def test_turn_limit_must_be_positive():
    with pytest.raises(ValueError):
        InterviewSession(FakeLLMClient(), role="Software Engineer", turn_limit=0)


def test_deeply_nested_report_still_completes(fake_session):
    session = fake_session(["Q1", "[" * 200000], turn_limit=1)["session"]
    session.start()

    assert session.submit_answer("A1") is True

    assert session.status is SessionStatus.COMPLETE
    assert session.assessment.overall_score == "N/A"


def test_finalizer_crash_still_completes():
    class _CrashingFinalizer:
        def finalize(self, transcript, role, context=""):
            raise RuntimeError("finalizer blew up")

    session = InterviewSession(
        FakeLLMClient(["Q1"]), role="Software Engineer", turn_limit=1, finalizer=_CrashingFinalizer(),
    )
    session.start()

    assert session.submit_answer("A1") is True

    assert session.status is SessionStatus.COMPLETE
    assert session.assessment.overall_score == "N/A"
    assert "finalizer blew up" in session.assessment.summary
    assert session.submit_answer("again") is False
