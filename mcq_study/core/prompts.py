# =============================================================================
# MCQ Study - Prompts
# =============================================================================
# The OCR prompt fixes the JSON contract decoded by `core/llm_json.py`.
# Keep the two in step when editing either.
# =============================================================================

from typing import Sequence

# --- OCR (vision) ---
OCR_PAGE_PROMPT = """Extract ALL MCQ questions from this textbook page image with MAXIMUM ACCURACY.

EXTRACT PAGE NUMBER: Look at ALL corners (top-left, top-right, bottom-left, bottom-right) and return the visible page number in the "pageNo" field.

QUESTION TYPES TO EXTRACT:

TYPE 1 - REGULAR OPTIONS (A/B/C/D or 1/2/3/4):
Q1. Question text?
A) Option A  B) Option B  C) Option C  D) Option D
Answer: B

TYPE 2 - STATEMENT MATCHING (P/Q/R/S):
Q2. Which are correct?
P. Statement 1  Q. Statement 2  R. Statement 3  S. Statement 4
Answer: P and Q (or P, Q and R, etc.)

TYPE 3 - MATCH THE PAIRS/COLUMNS:
Q3. Match column A with column B
A                          B
(1) Item A1             (i) Item B1
(2) Item A2             (ii) Item B2
(3) Item A3             (iii) Item B3
(4) Item A4             (iv) Item B4
Answer: 1-ii, 2-iii, 3-i, 4-iv (or 1-b, 2-d, 3-a, 4-c)

TYPE 4 - DIAGRAM/IMAGE QUESTIONS:
Q4. In the diagram showing [description], what is [question about diagram]?
A) Option based on diagram  B) Option  C) Option  D) Option
(For diagrams: include a description of what the diagram shows in the question text)

EXTRACT EACH QUESTION with:
- "no": Question number exactly as shown (e.g. "22.", "Q1.", "1.")
- "question": COMPLETE question text word-for-word INCLUDING:
  * All descriptive text before the question
  * For P/Q/R/S: all statements
  * For match pairs: the full matching task description
  * For diagrams: a clear description of what the diagram shows + the actual question
- "options": Array of exactly 4 options AS THEY APPEAR:
  * Regular: [opt A, opt B, opt C, opt D]
  * P/Q/R/S: [statement P, statement Q, statement R, statement S]
  * Match pairs: [1-i, 1-ii, 1-iii, 1-iv] OR [A-1, A-2, A-3, A-4] (top 4 pairings shown)
  * Diagram: [option A, option B, option C, option D]
- "correctAnswer": Exactly as shown (B, P and Q, 1-ii, etc.)
- "explanation": Visible explanation text, empty string if not shown
- "pageNo": Page number if first question on page

CRITICAL RULES:
- Copy ALL text EXACTLY, character for character, no modifications
- For diagrams: describe what you see in the image as part of the question
- For match pairs: capture all 4 column A items in the first option, column B pairings in "correctAnswer"
- Always exactly 4 options (pad with empty string "" if there are fewer than 4 items)
- Return ONLY valid JSON, no markdown, no extra text:

{
  "pageNo": "22",
  "questions": [
    {"no": "22.", "question": "full exact text", "options": ["opt1", "opt2", "opt3", "opt4"], "correctAnswer": "B", "explanation": "text"}
  ]
}

If no questions found: {"pageNo": "", "questions": []}"""


# --- Explanations ---
EXPLANATION_SYSTEM_PROMPT = (
    "You are a concise tutor explaining multiple choice questions. "
    "Provide clear, brief explanations for each option. "
    "IMPORTANT: Always add a blank line after each option and section for readability."
)

EXPLANATION_USER_TEMPLATE = """Question: {question}

Options:
{options}

Correct Answer: {correct_answer}

CRITICAL FORMATTING REQUIREMENTS:
{sections}

Each section MUST be separated by a blank line. Do not write paragraphs together."""


def option_letter(index: int) -> str:
    return chr(ord("A") + index)


def format_explanation_prompt(question: str, options: Sequence[str], correct_answer: str) -> str:
    """User message for one explanation request; options are lettered A, B, C, ..."""
    lettered = "\n".join(f"{option_letter(i)}. {o}" for i, o in enumerate(options))
    steps = []
    for i in range(len(options)):
        lead = "- Start with" if i == 0 else "- Then"
        steps.append(f'{lead} "Option {option_letter(i)}:" followed by 2-3 sentences')
        steps.append("- Add a BLANK LINE")
    steps.append('- Then "Key Concept:" followed by 1-2 sentences')
    return EXPLANATION_USER_TEMPLATE.format(
        question=question,
        options=lettered,
        correct_answer=correct_answer,
        sections="\n".join(steps),
    )
