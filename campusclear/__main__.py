#!/usr/bin/env python3
"""
Main entry point for the CampusCLEAR coach.
Allows running the package with: python -m campusclear
"""
import asyncio
import sys
from typing import List, Optional

from google.auth.exceptions import GoogleAuthError

from .config import get_config
from .errors import ConfigurationError, SessionStateError
from .infrastructure.data import ProfileStore, load_resume_text
from .interview import CandidateProfile, Difficulty, MockInterviewOrchestrator


def _flag_value(argv: List[str], name: str) -> Optional[str]:
    prefix = f"--{name}="
    for arg in argv:
        if arg.startswith(prefix):
            return arg[len(prefix):]
    return None


async def _run_interview(orchestrator: MockInterviewOrchestrator,
                         resume_text: str,
                         difficulty: Difficulty,
                         candidate: CandidateProfile) -> int:
    orchestrator.show_transcript_live()
    try:
        if not await orchestrator.start_interview(resume_text, difficulty, candidate):
            return 1
        await asyncio.to_thread(input, "⏎  Press Enter to end the interview\n")

        if not orchestrator.lifecycle.is_live:
            print("❌ The session closed before it was ended. Start a new interview to try again.")
            return 1

        feedback = await orchestrator.end_interview()
        return await _report_feedback(orchestrator, feedback)
    except SessionStateError as e:
        print(f"❌ {e}")
        return 1
    finally:
        orchestrator.shutdown()


async def _run_text_interview(orchestrator: MockInterviewOrchestrator,
                              resume_text: str,
                              difficulty: Difficulty,
                              candidate: CandidateProfile) -> int:
    try:
        feedback = await orchestrator.run_text_interview(resume_text, difficulty, candidate)
        return await _report_feedback(orchestrator, feedback)
    finally:
        orchestrator.shutdown()


async def _report_feedback(orchestrator: MockInterviewOrchestrator, feedback) -> int:
    while feedback is None:
        if not orchestrator.coordinator.can_retry_evaluation:
            return 1
        answer = await asyncio.to_thread(input, "🔁 Retry feedback? [y/N] ")
        if answer.strip().lower() != "y":
            return 1
        feedback = await orchestrator.retry_evaluation()

    orchestrator.print_feedback(feedback)
    return 0


def main():
    """Command-line interface for the coach."""

    config = get_config()
    argv = sys.argv[1:]

    # Resume context
    resume_text = ""
    resume_path = _flag_value(argv, "resume")
    if resume_path:
        try:
            resume_text = load_resume_text(resume_path)
        except (OSError, ValueError) as e:
            print(f"❌ Could not read resume: {e}")
            sys.exit(1)

    # Candidate profile
    candidate = CandidateProfile()
    uid = _flag_value(argv, "profile")
    if uid:
        profile = ProfileStore(config.profiles_dir).load(uid)
        if profile is None:
            print(f"⚠️  No profile found for '{uid}', continuing as a guest")
        else:
            candidate = CandidateProfile.from_user_profile(profile)
            print(f"👤 {candidate.display_name} ({candidate.branch or 'no branch'}) - {candidate.prep_level}")

    # Difficulty: explicit flag, then the profile's prep level, then the configured default
    difficulty_arg = _flag_value(argv, "difficulty")
    try:
        if difficulty_arg:
            difficulty = Difficulty.parse(difficulty_arg)
        elif candidate.prep_level:
            difficulty = Difficulty.for_prep_level(candidate.prep_level)
        else:
            difficulty = Difficulty.parse(config.default_difficulty)
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)

    orchestrator = MockInterviewOrchestrator(config)

    company = _flag_value(argv, "company")
    try:
        if company:
            overview = orchestrator.coaching.company_overview(company, candidate.branch or "Engineering")
            print(f"🏢 {company}")
            print("📋 Stages: " + " → ".join(overview.stages))
            print("📚 Must-know topics: " + ", ".join(overview.mustKnowTopics))
            print(f"📈 Hiring trends: {overview.hiringTrends}")
            return

        if "--review" in argv or "--quiz" in argv:
            if not resume_text.strip():
                print("⚠️  Pass --resume=PATH to review or quiz a resume")
                sys.exit(1)

        if "--review" in argv:
            critique = orchestrator.coaching.review_resume(resume_text)
            print(f"📄 Resume score: {critique.score}")
            for item in critique.good:
                print(f"  ✅ {item}")
            for item in critique.bad:
                print(f"  🔧 {item}")
            print(f"📝 {critique.summary}")
            return

        if "--quiz" in argv:
            questions = orchestrator.coaching.generate_quiz(resume_text)
            for number, q in enumerate(questions, 1):
                print(f"\n❓ {number}. {q.question}")
                for idx, option in enumerate(q.options):
                    marker = "✔" if idx == q.correctAnswer else " "
                    print(f"   [{marker}] {option}")
                if q.explanation:
                    print(f"   💡 {q.explanation}")
            return
    except ConfigurationError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)
    except (RuntimeError, ValueError, OSError, GoogleAuthError) as e:
        print(f"❌ Request failed: {e}")
        sys.exit(1)

    print(f"🎯 Difficulty: {difficulty.value}")
    if "--text" in argv:
        sys.exit(asyncio.run(_run_text_interview(orchestrator, resume_text, difficulty, candidate)))
    sys.exit(asyncio.run(_run_interview(orchestrator, resume_text, difficulty, candidate)))


if __name__ == "__main__":
    main()
