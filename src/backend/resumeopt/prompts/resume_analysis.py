"""Prompt templates for resume analysis.

Versioned so cached results are invalidated when a prompt changes.
"""

PROMPT_VERSION = "v1.0"

SYSTEM_PROMPT = """\
You are an expert in Applicant Tracking Systems (ATS) and resume writing. You \
analyze resumes and return structured, actionable assessments.

Rules:
- Scores are integers from 0-100
- Be specific: refer to concrete parts of the resume
- Never include protected characteristics (age, gender, race, religion, etc.) in your feedback
- Output ONLY valid JSON matching the specified structure. No markdown, no extra text."""

DETAILED_ATS_TEMPLATE = """\
## Task
Analyze the resume below strictly for Applicant Tracking System compatibility. \
Focus on structure, formatting, section clarity, and potential parsing issues \
(columns, headers/footers, images, non-standard fonts, date formats, keyword presence). \
Do not evaluate content quality or experience relevance.

## Resume
--- START ---
{resume_text}
--- END ---

## Output
Return JSON with this exact structure:

{{
  "atsScore": <integer 0-100, 100 = perfectly ATS-compatible>,
  "feedback": [
    {{"type": "<positive|negative|info>", "message": "<one specific ATS-related point>"}}
  ]
}}"""

JOB_OPTIMIZATION_TEMPLATE = """\
## Task
Help the candidate tailor this resume to the job description below.

## Resume
--- START RESUME ---
{resume_text}
--- END RESUME ---

## Job Description
--- START JOB DESCRIPTION ---
{job_description}
--- END JOB DESCRIPTION ---

## Output
Return JSON with this exact structure:

{{
  "optimizationScore": <integer 0-100, how well the resume matches the job's keywords and requirements>,
  "keywordAnalysis": {{
    "matched": ["<keyword found in both resume and job description>"],
    "missing": ["<important job description keyword absent from the resume>"]
  }},
  "suggestions": ["<specific, actionable change, e.g. Highlight your experience with X>"]
}}"""


def build_detailed_ats_prompt(resume_text: str) -> tuple[str, str]:
    """Returns (system_prompt, user_prompt)."""
    return SYSTEM_PROMPT, DETAILED_ATS_TEMPLATE.format(resume_text=resume_text)


def build_job_optimization_prompt(resume_text: str, job_description: str) -> tuple[str, str]:
    """Returns (system_prompt, user_prompt)."""
    user_prompt = JOB_OPTIMIZATION_TEMPLATE.format(
        resume_text=resume_text,
        job_description=job_description,
    )
    return SYSTEM_PROMPT, user_prompt
