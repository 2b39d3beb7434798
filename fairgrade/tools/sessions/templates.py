"""Built-in rubric templates, grouped by subject."""

from typing import List, Optional

from fairgrade.tools.grading.models import Criterion
from fairgrade.tools.grading.rubric_parser import format_rubric
from .models import Rubric


def _criteria(*pairs) -> List[Criterion]:
    return [Criterion(name=name, weight=weight) for name, weight in pairs]


TEMPLATE_RUBRICS: List[Rubric] = [
    Rubric(
        id="math-basic", subject="math", is_template=True,
        name="Basic Mathematics Rubric",
        description="For general mathematics exams with problem-solving focus",
        criteria=_criteria(("Correct answer", 50), ("Proper working/steps", 30),
                           ("Mathematical notation", 10), ("Clarity and organization", 10)),
    ),
    Rubric(
        id="math-advanced", subject="math", is_template=True,
        name="Advanced Mathematics Rubric",
        description="For advanced mathematics with proofs and complex problem-solving",
        criteria=_criteria(("Correct solution/proof", 40), ("Mathematical reasoning", 30),
                           ("Proper notation and terminology", 15), ("Organization and clarity", 15)),
    ),
    Rubric(
        id="physics-basic", subject="physics", is_template=True,
        name="Basic Physics Rubric",
        description="For general physics exams with calculations and explanations",
        criteria=_criteria(("Correct answer with units", 40), ("Proper application of formulas", 25),
                           ("Physical reasoning and explanations", 25),
                           ("Diagrams and visual representations", 10)),
    ),
    Rubric(
        id="physics-lab", subject="physics", is_template=True,
        name="Physics Lab Report Rubric",
        description="For physics lab reports and experimental analysis",
        criteria=_criteria(("Experimental procedure", 20), ("Data collection and analysis", 30),
                           ("Results and calculations", 30), ("Discussion and conclusion", 20)),
    ),
    Rubric(
        id="biology-basic", subject="biology", is_template=True,
        name="General Biology Rubric",
        description="For general biology exams with concepts and explanations",
        criteria=_criteria(("Factual accuracy", 40), ("Use of biological terminology", 20),
                           ("Depth of explanation", 30), ("Organization and clarity", 10)),
    ),
    Rubric(
        id="biology-advanced", subject="biology", is_template=True,
        name="Advanced Biology Rubric",
        description="For advanced biology with detailed analysis",
        criteria=_criteria(("Scientific accuracy", 35), ("Depth of analysis", 25),
                           ("Application of concepts", 25), ("Scientific communication", 15)),
    ),
    Rubric(
        id="chemistry-basic", subject="chemistry", is_template=True,
        name="Basic Chemistry Rubric",
        description="For general chemistry exams with calculations and concepts",
        criteria=_criteria(("Correct answers with units", 40), ("Chemical equations and formulas", 25),
                           ("Conceptual understanding", 25), ("Organization and presentation", 10)),
    ),
    Rubric(
        id="chemistry-advanced", subject="chemistry", is_template=True,
        name="Advanced Chemistry Rubric",
        description="For advanced chemistry with detailed analysis",
        criteria=_criteria(("Chemical accuracy", 35), ("Problem-solving approach", 25),
                           ("Application of chemical principles", 25), ("Scientific communication", 15)),
    ),
    Rubric(
        id="english-essay", subject="english", is_template=True,
        name="Essay Writing Rubric",
        description="For evaluating essays and written compositions",
        criteria=_criteria(("Thesis and argument development", 30), ("Evidence and supporting details", 25),
                           ("Organization and structure", 20), ("Grammar and mechanics", 15),
                           ("Style and voice", 10)),
    ),
    Rubric(
        id="english-literature", subject="english", is_template=True,
        name="Literature Analysis Rubric",
        description="For literary analysis and text interpretation",
        criteria=_criteria(("Textual understanding", 25), ("Analysis of literary elements", 30),
                           ("Use of evidence from text", 25), ("Writing clarity and organization", 20)),
    ),
    Rubric(
        id="social-essay", subject="social", is_template=True,
        name="Social Studies Essay Rubric",
        description="For evaluating social studies essays and arguments",
        criteria=_criteria(("Historical/social understanding", 30), ("Use of evidence and examples", 25),
                           ("Analysis and critical thinking", 25), ("Organization and clarity", 20)),
    ),
    Rubric(
        id="social-document", subject="social", is_template=True,
        name="Document Analysis Rubric",
        description="For primary and secondary source analysis",
        criteria=_criteria(("Source contextualization", 25), ("Comprehension of content", 25),
                           ("Analysis of perspective and bias", 30),
                           ("Connection to historical/social concepts", 20)),
    ),
]

for _template in TEMPLATE_RUBRICS:
    _template.content = format_rubric(_template.criteria)


def templates_for_subject(subject: str) -> List[Rubric]:
    return [t for t in TEMPLATE_RUBRICS if t.subject == subject.lower()]


def get_template(template_id: str) -> Optional[Rubric]:
    for template in TEMPLATE_RUBRICS:
        if template.id == template_id:
            return template
    return None
