#!/usr/bin/env python3
"""
Main entry point for the interview coach.
Allows running the package with: python -m interview_coach
"""
import sys
import logging
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import List, Optional

from .config import get_config, ROLES, CUSTOM_ROLE, ConfigurationError, Config
from .utils import setup_logging
from .infrastructure.llm import GeminiRestClient, ResilientGateway
from .infrastructure.audio import SubprocessPlayer
from .interview import (
    InterviewSession, AudioPipeline, ContextService, SessionStatus,
    InterviewEventBus, EventLogger, InterviewMetrics, Assessment, Speaker
)

logger = logging.getLogger("cli")

HELP_TEXT = """Commands:
  <text>          submit <text> as your answer
  /draft <text>   set your answer without submitting
  /listen         dictate your answer (press Enter to stop)
  /refine         get feedback and a polished version of your draft
  /accept         use the polished version as your draft
  /dismiss        discard the polished version
  /submit         submit the current draft
  /play [n]       replay the question audio (turn n, default the latest)
  /stop           stop audio playback
  /end            end the interview now and get feedback
  /help           show this help"""

LISTEN_TIMEOUT_SECONDS = 60


def _parse_args(argv: List[str]) -> dict:
    """Hand-parse --flag and --key=value arguments."""
    options = {
        "role": None,
        "context_file": None,
        "image": None,
        "questions": None,
        "text_mode": "--text" in argv or "--no-tts" in argv,
        "mute": "--mute" in argv,
    }
    for arg in argv:
        if arg.startswith("--role="):
            options["role"] = arg.split("=", 1)[1]
        elif arg.startswith("--context-file="):
            options["context_file"] = arg.split("=", 1)[1]
        elif arg.startswith("--image="):
            options["image"] = arg.split("=", 1)[1]
        elif arg.startswith("--questions="):
            try:
                options["questions"] = int(arg.split("=", 1)[1])
            except ValueError:
                print("❌ Invalid questions value. Use --questions=1 or more")
                sys.exit(1)
            if options["questions"] < 1:
                print("❌ Invalid questions value. Use --questions=1 or more")
                sys.exit(1)
    return options


def _choose_role(preselected: Optional[str]) -> str:
    if preselected:
        if preselected.isdigit() and 1 <= int(preselected) <= len(ROLES):
            return ROLES[int(preselected) - 1]
        if preselected.lower() == "custom":
            return CUSTOM_ROLE
        return preselected

    print("\n🎭 Choose the role you are interviewing for:")
    for i, role in enumerate(ROLES, 1):
        print(f"   {i}. {role}")
    while True:
        choice = input("Role number: ").strip()
        if choice.isdigit() and 1 <= int(choice) <= len(ROLES):
            return ROLES[int(choice) - 1]
        print("❌ Please enter a number from the list")


def _load_context(options: dict, role: str, context_service: ContextService) -> str:
    if options["context_file"]:
        with open(options["context_file"], "r", encoding="utf-8") as f:
            return f.read().strip()

    if options["image"]:
        print("🖼️  Analyzing job description image...")
        text = context_service.extract_from_image(options["image"])
        print(f"📄 Extracted context:\n{text}\n")
        return text

    if role == CUSTOM_ROLE:
        print("📋 Paste the job description, then an empty line to finish:")
        lines = []
        while True:
            line = input()
            if not line.strip():
                break
            lines.append(line)
        return "\n".join(lines).strip()
    return ""


def _build_client(config: Config) -> GeminiRestClient:
    gateway = ResilientGateway(max_attempts=config.max_attempts, base_delay=config.base_delay_seconds)
    return GeminiRestClient(
        api_key=config.gemini_api_key,
        provider=config.provider,
        project=config.google_cloud_project,
        location=config.vertex_location,
        text_model=config.model_name_text,
        tts_model=config.model_name_tts,
        voice=config.tts_voice,
        credentials_json=config.google_application_credentials,
        timeout=config.llm_timeout,
        gateway=gateway,
    )


def _speech_capture_loader(config: Config):
    """Return a callable that builds the microphone capture on first use."""
    cache = {}

    def load():
        if "capture" not in cache:
            # google-cloud-speech and PyAudio are only loaded when dictation is used
            from .infrastructure.audio.speech import GoogleSpeechCapture
            capture = GoogleSpeechCapture(language=config.language_code)
            cache["capture"] = capture if capture.is_available() else None
            if cache["capture"] is None:
                logger.info("Speech capture unavailable; /listen disabled")
        return cache["capture"]

    return load


def _print_question(session: InterviewSession) -> None:
    snap = session.snapshot()
    question = snap.last_question
    if question is None:
        return
    print(f"\n📍 Q {snap.current_question_number} / {snap.turn_limit}")
    print(f"🤖 Interviewer: {question.text}")


def _display_results(session: InterviewSession, log_file: str, metrics: InterviewMetrics) -> None:
    """Display the final assessment and the conversation log."""
    assessment = session.assessment
    if assessment is None:
        return
    print("\n" + "=" * 50)
    print("🎯 INTERVIEW COMPLETE")
    print("=" * 50)
    print(f"💼 Role: {session.role}")
    print(f"🔢 Overall Score: {assessment.overall_score} / 5")
    print(f"📝 Summary: {assessment.summary}")
    if assessment.breakdown:
        print("📊 Breakdown:")
        for item in assessment.breakdown:
            print(f"   • {item.label}: {item.rating:g} / 5")
    print("\n💬 Conversation Log:")
    for turn in session.transcript:
        if turn.speaker is Speaker.INTERVIEWER:
            print(f"   🤖 Interviewer: {turn.text}")
        else:
            print(f"   🧑 Your Answer: {turn.text}")
    print(f"\n📁 Full details logged to: {log_file}")
    print(f"📈 Session metrics: {metrics.get_metrics()}")


def _listen(session: InterviewSession, load_capture) -> None:
    capture = load_capture() if load_capture is not None else None
    if capture is None:
        print("🎙️  Speech input is not available on this machine")
        return
    future = capture.start()
    try:
        input("🎧 Listening... press Enter to stop ")
    finally:
        capture.stop()
    print("🔍 Processing speech...")
    try:
        text = future.result(timeout=LISTEN_TIMEOUT_SECONDS)
    except FutureTimeoutError:
        logger.error("Speech recognition timed out")
        print("❌ Speech recognition timed out")
        return
    except Exception as e:
        logger.error("Speech recognition failed: %s", e)
        print(f"❌ Speech recognition failed: {e}")
        return
    if not text:
        print("💬 (no speech detected)")
        return
    session.update_draft(text)
    print(f"💬 Draft: \"{text}\"  (/submit to send, /refine for feedback)")


def _handle_command(session: InterviewSession, line: str, load_capture) -> None:
    command, _, arg = line.partition(" ")
    arg = arg.strip()

    if command == "/help":
        print(HELP_TEXT)
    elif command == "/draft":
        session.update_draft(arg)
        print("✏️  Draft saved")
    elif command == "/listen":
        _listen(session, load_capture)
    elif command == "/refine":
        if arg:
            session.update_draft(arg)
        print("🤔 Refining your answer...")
        draft = session.request_refinement()
        if draft is None:
            print("❌ Nothing to refine - set a draft first with /draft or /listen")
            return
        print(f"\n💡 Feedback:\n{draft.critique}")
        print(f"\n✨ Refined answer:\n{draft.refined_text}")
        print("\n   (/accept to use it, /dismiss to keep yours)")
    elif command == "/accept":
        if session.accept_refined():
            print(f"✏️  Draft: \"{session.snapshot().draft_text}\"")
        else:
            print("❌ No refined answer to accept")
    elif command == "/dismiss":
        session.dismiss_refinement()
    elif command == "/submit":
        if not session.submit_answer(session.snapshot().draft_text):
            print("❌ Draft is empty")
    elif command == "/play":
        snap = session.snapshot()
        if arg.isdigit():
            turn_index = int(arg)
        else:
            question = snap.last_question
            turn_index = question.index if question is not None else -1
        if not session.play_audio(turn_index):
            print("🔇 No audio for that turn")
    elif command == "/stop":
        session.stop_audio()
    elif command == "/end":
        print("🏁 Ending interview early...")
        session.end_interview_early()
    else:
        print(f"❌ Unknown command {command}. Type /help")


def _end_early(session: InterviewSession) -> None:
    print("\n🏁 Ending interview early...")
    session.end_interview_early()


def run_session(session: InterviewSession, load_capture=None) -> Optional[Assessment]:
    """Drive one session from the terminal until it completes."""
    print("🤖 Preparing your first question...")
    try:
        session.start()
    except KeyboardInterrupt:
        _end_early(session)
        return session.assessment
    _print_question(session)

    while session.status is SessionStatus.COLLECTING:
        try:
            line = input("\n✍️  Your answer (/help for commands): ").strip()
        except (EOFError, KeyboardInterrupt):
            _end_early(session)
            break

        if not line:
            continue

        answered_before = session.snapshot().answered_count
        try:
            if line.startswith("/"):
                _handle_command(session, line, load_capture)
            else:
                if answered_before + 1 >= session.turn_limit:
                    print("📊 Generating your assessment...")
                session.submit_answer(line)
        except KeyboardInterrupt:
            _end_early(session)
            break

        snap = session.snapshot()
        if snap.status is SessionStatus.COLLECTING and snap.answered_count > answered_before:
            _print_question(session)

    return session.assessment


def main():
    """Command-line interface for the interview coach."""

    # Load configuration from environment
    try:
        config = get_config()
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    options = _parse_args(sys.argv[1:])
    if options["questions"] is not None:
        config.turn_limit = options["questions"]
    use_tts = config.enable_tts and not options["text_mode"]
    autoplay = config.autoplay and not options["mute"]

    log_file = setup_logging(config.log_file, config.log_level)
    logger.info("Starting interview coach (provider=%s, tts=%s)", config.provider, use_tts)

    llm_client = _build_client(config)
    context_service = ContextService(llm_client)

    try:
        selected = _choose_role(options["role"])
        context = _load_context(options, selected, context_service)
        role, context = context_service.resolve_role(selected, context)
    except (ConfigurationError, OSError) as e:
        print(f"❌ {e}")
        sys.exit(1)

    if use_tts:
        print("🔊 TTS Mode: Interviewer will speak questions aloud (default)")
        print("   (Use --text or --no-tts to disable speech, --mute to disable autoplay)")
    else:
        print("📝 Text Mode: Questions will be displayed as text only")

    event_bus = InterviewEventBus()
    metrics = InterviewMetrics()
    event_bus.subscribe_all(EventLogger().handle_event)
    event_bus.subscribe_all(metrics.handle_event)

    load_capture = _speech_capture_loader(config)

    print(f"\n🎙️  Starting {role} interview - {config.turn_limit} questions")
    print(f"📝 Detailed logs: {log_file}")
    print("=" * 50)

    try:
        while True:
            audio = None
            if use_tts:
                player = SubprocessPlayer()
                if not player.is_available():
                    print("🔇 No audio player found (afplay/aplay); questions will be text only")
                audio = AudioPipeline(llm_client, player)

            session = InterviewSession(
                llm_client,
                role=role,
                context=context,
                turn_limit=config.turn_limit,
                audio=audio,
                autoplay=autoplay,
                event_bus=event_bus,
            )
            try:
                assessment = run_session(session, load_capture)
            finally:
                session.close()

            if assessment is not None:
                _display_results(session, log_file, metrics)

            try:
                again = input("\n🔁 Start a new interview? [y/N]: ").strip().lower()
            except (EOFError, KeyboardInterrupt):
                again = ""
            if again not in ("y", "yes"):
                break
            metrics.reset()
            print("=" * 50)
    finally:
        llm_client.close()


if __name__ == "__main__":
    main()
