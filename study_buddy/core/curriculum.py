"""
Static curriculum reference table.

Year 7 topics, known misconceptions and remediation scaffolds consumed by
the prompt builder. Read-only.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class CurriculumTopic:
    """A curriculum topic and the classifier labels it covers."""
    id: str
    name: str
    description: str
    subtopics: Tuple[str, ...]
    labels: Tuple[str, ...] = ()
    misconception: Optional[str] = None


@dataclass(frozen=True)
class Scaffold:
    """Ordered remediation steps for a recognised problem pattern."""
    key: str
    title: str
    topic_id: str
    keywords: Tuple[str, ...]
    steps: Tuple[str, ...]


CURRICULUM: Dict[str, CurriculumTopic] = {
    topic.id: topic
    for topic in (
        CurriculumTopic(
            id="integers",
            name="Integers",
            description="Operations with positive and negative numbers",
            subtopics=("Adding and subtracting integers", "Multiplying and dividing integers",
                       "Order of operations", "Number line"),
            labels=("Number Operations",),
            misconception="Students often think subtracting a negative makes a number smaller.",
        ),
        CurriculumTopic(
            id="fractions",
            name="Fractions & Percentages",
            description="Adding, subtracting, multiplying, and dividing fractions",
            subtopics=("Equivalent fractions", "Adding and subtracting fractions",
                       "Multiplying and dividing fractions", "Fractions to decimals",
                       "Percentages of quantities"),
            labels=("Fractions",),
            misconception=(
                "Students often add numerators and denominators separately "
                "(1/2 + 1/3 = 2/5)."
            ),
        ),
        CurriculumTopic(
            id="algebra_basics",
            name="Algebra & Equations",
            description="Variables, expressions, and simple equations",
            subtopics=("Variables and expressions", "Substitution", "Simplifying expressions",
                       "One-step equations", "Two-step equations"),
            labels=("Algebra",),
            misconception=(
                "Students often treat 2x as 'twenty-something' or apply an operation "
                "to only one side of an equation."
            ),
        ),
        CurriculumTopic(
            id="angles",
            name="Angles & Parallel Lines",
            description="Types of angles, angle relationships",
            subtopics=("Types of angles", "Angles on a straight line", "Angles at a point",
                       "Vertically opposite angles", "Parallel lines"),
            labels=("Geometry",),
        ),
        CurriculumTopic(
            id="decimals",
            name="Decimals",
            description="Operations with decimals and place value",
            subtopics=("Place value", "Rounding decimals", "Operations with decimals"),
            misconception="Students often think 0.25 is bigger than 0.3 because 25 > 3.",
        ),
        CurriculumTopic(
            id="area_volume",
            name="Area & Volume",
            description="Area, perimeter, and properties of shapes",
            subtopics=("Perimeter", "Area of rectangles and triangles", "Area of composite shapes",
                       "Volume of rectangular prisms"),
            misconception="Students often confuse area with perimeter.",
        ),
        CurriculumTopic(
            id="indices",
            name="Indices",
            description="Powers, square numbers and square roots",
            subtopics=("Index notation", "Square numbers and roots", "Index laws"),
            labels=("Indices",),
            misconception="Students often read 3^2 as 3 x 2.",
        ),
        CurriculumTopic(
            id="data",
            name="Analysing Data",
            description="Mean, median, mode, range, and data interpretation",
            subtopics=("Mean", "Median", "Mode", "Range", "Reading graphs"),
            labels=("Statistics",),
            misconception="Students often forget to order the data before finding the median.",
        ),
        CurriculumTopic(
            id="probability",
            name="Probability",
            description="Basic probability concepts and calculations",
            subtopics=("Sample spaces", "Probability as a fraction", "Complementary events"),
        ),
        CurriculumTopic(
            id="ratios_rates",
            name="Ratios, Rates & Time",
            description="Understanding and solving ratio problems",
            subtopics=("Simplifying ratios", "Dividing in a ratio", "Rates", "Time calculations"),
        ),
        CurriculumTopic(
            id="number_theory",
            name="Primes & Factors",
            description="Factors, multiples, primes and divisibility",
            subtopics=("Factors and multiples", "Prime numbers", "Divisibility rules",
                       "Highest common factor"),
            labels=("Number Theory",),
        ),
    )
}


SCAFFOLDS: Tuple[Scaffold, ...] = (
    Scaffold(
        key="fraction_to_decimal",
        title="Converting a fraction to a decimal by long division",
        topic_id="fractions",
        keywords=("fraction to decimal", "as a decimal", "convert to decimal", "into a decimal"),
        steps=(
            "Ask what the fraction bar means (numerator divided by denominator).",
            "Set up the long division with the numerator inside and the denominator outside.",
            "Ask whether the denominator goes into the numerator; if not, write 0 and a decimal point.",
            "Add a zero to the numerator and divide again, recording each digit.",
            "Keep bringing down zeros until the remainder is zero or the digits repeat.",
            "Check the answer by estimating whether it is sensible.",
        ),
    ),
    Scaffold(
        key="adding_fractions",
        title="Adding fractions with different denominators",
        topic_id="fractions",
        keywords=("add fractions", "adding fractions", "common denominator"),
        steps=(
            "Ask whether the denominators are the same.",
            "Find the lowest common multiple of the denominators.",
            "Rewrite each fraction as an equivalent fraction with that denominator.",
            "Add the numerators and keep the denominator.",
            "Simplify the result if possible.",
        ),
    ),
    Scaffold(
        key="two_step_equation",
        title="Solving a two-step linear equation",
        topic_id="algebra_basics",
        keywords=("solve", "equation", "find x"),
        steps=(
            "Ask what is happening to x (multiplied, then added to).",
            "Ask which operation to undo first (the addition or subtraction).",
            "Do the same inverse operation to both sides.",
            "Undo the multiplication by dividing both sides.",
            "Substitute the answer back to check it balances.",
        ),
    ),
    Scaffold(
        key="negative_numbers",
        title="Subtracting negative numbers",
        topic_id="integers",
        keywords=("negative", "minus a minus", "subtract a negative"),
        steps=(
            "Place the first number on a number line.",
            "Ask which way subtracting moves you.",
            "Ask what subtracting a negative does to that direction.",
            "Move along the number line and read off the answer.",
        ),
    ),
    Scaffold(
        key="finding_median",
        title="Finding the median of a data set",
        topic_id="data",
        keywords=("median", "middle value"),
        steps=(
            "Ask the student to order the data from smallest to largest.",
            "Count how many values there are.",
            "Find the middle position (or the two middle values).",
            "If there are two middle values, find the number halfway between them.",
        ),
    ),
    Scaffold(
        key="angles_on_line",
        title="Finding an unknown angle on a straight line",
        topic_id="angles",
        keywords=("straight line", "supplementary", "unknown angle"),
        steps=(
            "Ask what angles on a straight line add up to.",
            "Write an equation using the known angles and the unknown.",
            "Solve for the unknown angle.",
            "Check the angles add to 180 degrees.",
        ),
    ),
)


def lookup_topic(name: Optional[str]) -> Optional[CurriculumTopic]:
    """Find a curriculum topic by id, display name or classifier label."""
    if not name:
        return None
    needle = name.strip().lower()
    for topic in CURRICULUM.values():
        if needle in (topic.id, topic.name.lower()) or needle in (
            label.lower() for label in topic.labels
        ):
            return topic
    return None


def scaffolds_for_topic(topic_id: str) -> List[Scaffold]:
    return [scaffold for scaffold in SCAFFOLDS if scaffold.topic_id == topic_id]
