from __future__ import annotations

from typing import Sequence

from app.conversation.models import TranscriptMessage
from app.schemas.resume import ParsedResume

PARSE_SYSTEM_PROMPT = """You are an expert resume parser. Extract the following information from the resume:
Skills: A list of skills mentioned in the resume.
Experience: A list of work experiences, including job title, company, dates of employment, and a brief description of the responsibilities.
Education: A list of educational experiences, including the name of the institution, degree obtained, and dates of attendance.

Return ONLY valid JSON with exactly these keys, even if a list is empty:
{
  "skills": ["string"],
  "experience": [{"title": "string", "company": "string", "dates": "string", "description": "string"}],
  "education": [{"institution": "string", "degree": "string", "dates": "string"}]
}"""


SCORE_SYSTEM_PROMPT = """You are an expert resume analyst and career coach with extensive experience in modern hiring practices and ATS systems. Analyze the provided resume and score it comprehensively based on current industry standards.

SCORING CRITERIA (each 0-100):
1. formatting: clean professional layout, consistent typography, white space, easy to scan.
2. content: clear concise writing, action-oriented language, relevant information, contact details.
3. keywords: industry-relevant keywords, job-specific terminology, standard section headings, ATS-safe layout.
4. experience: clear progression, relevant history, appropriate detail, chronological consistency.
5. skills: relevant technical skills, categorization, balance of hard and soft skills, skills backed by experience.
6. education: relevant background, formatting, certifications, professional development.
7. achievements: quantified results, specific accomplishments, metrics, awards, problem-solving examples.

ANALYSIS REQUIREMENTS:
- Provide specific, actionable feedback.
- Focus on what recruiters and hiring managers look for.
- Highlight both strengths and areas for improvement.

Return ONLY valid JSON:
{
  "overall_score": 0,
  "category_scores": {"formatting": 0, "content": 0, "keywords": 0, "experience": 0, "skills": 0, "education": 0, "achievements": 0},
  "strengths": ["string"],
  "improvements": ["string"],
  "ats_compatibility": 0,
  "recommendations": ["string"],
  "industry_alignment": "string"
}"""


REWRITE_SYSTEM_PROMPT = """You are an expert resume writer specializing in applicant tracking system (ATS) optimization.

Based on the provided resume and interview data, rewrite the resume to increase its chances of passing through screening software.
Focus on incorporating relevant keywords and formatting the resume for optimal parsing.
Make sure to include all the original information, and that no content from the original resume is lost.

Return ONLY valid JSON:
{"rewritten_resume": "string"}"""


def rewrite_user_prompt(interview_summary: str) -> str:
    summary = interview_summary.strip() or "No interview data was collected."
    return f"Interview Data:\n{summary}\n\nOriginal Resume follows."


INTERVIEW_SYSTEM_PROMPT = """You are a friendly and professional interviewer. Your goal is to have a brief conversation with the candidate to clarify points on their resume or gather additional information that will be useful for rewriting their resume.

Based on the resume and the conversation history, provide a concise and relevant response or ask a clarifying question.
If the conversation history is empty and there is no user message, start with an opening question related to the resume.
Ask only one question at a time. Do not prefix your reply with "AI:" or any other label.

Return ONLY valid JSON:
{"ai_message": "string"}"""


def interview_user_prompt(
    parsed_resume: ParsedResume | None,
    history: Sequence[TranscriptMessage],
    user_message: str | None,
) -> str:
    resume = parsed_resume or ParsedResume()
    lines = ["Parsed Resume Information:", "Skills:"]
    lines.extend(f"- {skill}" for skill in resume.skills)
    lines.append("")
    lines.append("Work Experience:")
    for job in resume.experience:
        lines.append(f"- Title: {job.title}")
        lines.append(f"  Company: {job.company}")
        lines.append(f"  Dates: {job.dates}")
        lines.append(f"  Description: {job.description}")
    lines.append("")
    lines.append("Education:")
    for school in resume.education:
        lines.append(f"- Degree: {school.degree}")
        lines.append(f"  Institution: {school.institution}")
        lines.append(f"  Dates: {school.dates}")

    lines.append("")
    lines.append("Conversation History:")
    for message in history:
        if message.role == "user":
            lines.append(f"User: {message.text}")
        elif message.role == "assistant":
            lines.append(f"AI: {message.text}")
    if user_message:
        lines.append("")
        lines.append(f"User: {user_message}")
    return "\n".join(lines)
