from interview_coach.interview.events import (
    InterviewEventBus, InterviewMetrics, EventLogger, EventType,
    SessionStartedEvent, ErrorOccurredEvent, QuestionAskedEvent
)


def test_subscribers_receive_matching_events():
    bus = InterviewEventBus()
    seen, everything = [], []
    bus.subscribe(EventType.SESSION_STARTED, seen.append)
    bus.subscribe_all(everything.append)

    bus.emit(SessionStartedEvent("s1", 0.0, "Software Engineer", 5, False))
    bus.emit(ErrorOccurredEvent("s1", 0.0, "boom", "assessment"))

    assert [e.event_type for e in seen] == [EventType.SESSION_STARTED]
    assert len(everything) == 2
    assert seen[0].data == {"role": "Software Engineer", "turn_limit": 5, "has_context": False}


def test_handler_errors_do_not_reach_the_emitter():
    bus = InterviewEventBus()
    received = []

    def broken(event):
        raise RuntimeError("handler bug")

    bus.subscribe(EventType.ERROR_OCCURRED, broken)
    bus.subscribe_all(received.append)

    bus.emit(ErrorOccurredEvent("s1", 0.0, "boom", "gateway"))

    assert len(received) == 1


def test_unsubscribe_and_clear():
    bus = InterviewEventBus()
    seen = []
    bus.subscribe(EventType.QUESTION_ASKED, seen.append)
    bus.unsubscribe(EventType.QUESTION_ASKED, seen.append)
    bus.emit(QuestionAskedEvent("s1", 0.0, 0, 1, "Q", False))
    assert seen == []

    bus.subscribe_all(seen.append)
    bus.clear_handlers()
    bus.emit(QuestionAskedEvent("s1", 0.0, 0, 1, "Q", False))
    assert seen == []


def test_metrics_count_and_reset():
    metrics = InterviewMetrics()
    metrics.handle_event(QuestionAskedEvent("s1", 0.0, 0, 1, "Q", False))
    metrics.handle_event(QuestionAskedEvent("s1", 0.0, 2, 2, "Q", False))

    assert metrics.get_metrics()["questions_asked"] == 2

    metrics.reset()
    assert metrics.get_metrics()["questions_asked"] == 0


def test_event_logger_writes_event_type(caplog):
    caplog.set_level("INFO", logger="event_logger")

    EventLogger().handle_event(ErrorOccurredEvent("s1", 0.0, "boom", "gateway"))

    assert "error_occurred" in caplog.text
