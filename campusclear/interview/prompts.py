"""
Prompt templates for the live interviewer and the one-shot coaching calls.

Kept apart from the business logic so the wording can be edited without
touching session code.
"""
from typing import List

from .models import CandidateProfile, Difficulty


COACH_SYSTEM_INSTRUCTION = """
You are the core AI engine for CampusCLEAR, a social-media-cum-placement-prep app. Your goal is to act as a career coach, data organizer, and interviewer.

Operational Guidelines:
1. The Ledger (Placement Intelligence): Provide stage-wise interview breakdowns, technical topics, and hiring trends.
2. Practice Section (AI Coach):
   - Resume Review: Use "Critique & Fix" framework.
   - Mock Interview: Adaptive difficulty based on Prep Level. 5 questions one-by-one.
   - Resume Quiz: 10-15 MCQs based 70% on technical skills in resume and 30% on experience.
3. Be concise, specific, and encouraging. Never invent facts about the candidate.
""".strip()

EVALUATION_IMAGE_GUIDANCE = (
    "When evaluating the image, look for eye contact, sitting posture, and professional attire. "
    "The overallScore must be an integer between 1 and 10."
)


class InterviewPrompts:
    """Collection of all coaching prompts."""

    @staticmethod
    def live_interviewer(resume_text: str, difficulty: Difficulty, candidate: CandidateProfile) -> str:
        """System instruction for the realtime voice interviewer."""
        return f"""
You are a professional mock interviewer for CampusCLEAR.
Use the following resume context: {resume_text}.
Difficulty Level: {difficulty.value}.
Candidate Name: {candidate.display_name}.
Candidate Branch: {candidate.branch}.

Guidelines:
1. Ask 5-6 questions one-by-one.
2. Periodically comment on the candidate's posture and technique based on the video frames.
3. Be encouraging but rigorous.
4. When the user seems finished or clicks end, wait for them to finish.
        """.strip()

    @staticmethod
    def evaluation(transcript_lines: List[str]) -> str:
        transcript = "\n".join(transcript_lines) if transcript_lines else "(no speech was transcribed)"
        return (
            "Evaluate this interview transcript and provide feedback on technical accuracy, "
            "communication, and confidence. Score the candidate out of 10. Also, analyze the "
            "provided image frame for posture and professional technique if available.\n\n"
            f"Transcript:\n{transcript}"
        )

    @staticmethod
    def resume_critique(resume_text: str) -> str:
        return f"Critique this resume text: \n\n{resume_text}"

    @staticmethod
    def resume_quiz(resume_text: str) -> str:
        return (
            f"Generate 10 technical MCQs based on this resume: {resume_text}. "
            "Focus strictly on technical skills and projects mentioned. Ensure high relevance."
        )

    @staticmethod
    def company_overview(company_name: str, branch: str) -> str:
        return f"Provide a concise placement intelligence overview for {company_name} for a student in {branch}."

    @staticmethod
    def next_question(candidate: CandidateProfile, history: List[str], resume_text: str,
                      difficulty: Difficulty) -> str:
        """Turn-based fallback when no realtime session is available."""
        return f"""
Based on the user's resume and current difficulty ({difficulty.value}), ask the next interview question. This is question #{len(history) + 1}. Focus on technical and behavioral alignment with their background.

User Resume: {resume_text}
Current History: {chr(10).join(history)}
Prep Level: {candidate.prep_level or 'Unknown'}
        """.strip()
