from __future__ import annotations

import pytest

from nom035.domain.mapping import Thresholds, get_category_mapping
from nom035.domain.models import Answer, GuideType, Response, ResponseType, RiskTier
from nom035.domain.services import (
    REVERSE_QUESTIONS,
    classify_category_risk,
    classify_overall_risk,
    generate_report,
    get_recommendations,
    is_reverse_scored,
    score_category,
    score_question,
)


def responses(guide_type: GuideType, answer: str) -> list[Response]:
    mapping = get_category_mapping(guide_type)
    return [Response.of(n, answer) for c in mapping.categories for n in c.questions]


def category(result, category_id):
    return next(c for c in result.category_risks if c.category_id == category_id)


def test_guide_i_traumatic_events_scenario():
    result = generate_report(
        "I",
        [Response.of(1, "Sí"), Response.of(2, "No"), Response.of(3, "Sí")],
        total_questions=15,
    )

    traumatic = category(result, "traumatic-events")
    assert traumatic.score == 2
    assert traumatic.risk_level.tier is RiskTier.ALTO
    assert result.overall_score == 2
    assert result.overall_risk.tier is RiskTier.NULO
    assert result.answered_questions == 3
    assert result.total_questions == 15


def test_reverse_scored_question_guide_ii():
    assert is_reverse_scored(18, "II")
    assert score_question(Response.of(18, "Siempre"), "II") == 0
    assert score_question(Response.of(17, "Siempre"), "II") == 4

    result = generate_report("II", [Response.of(18, "Siempre")], total_questions=46)
    assert category(result, "leadership").score == 0


def test_reverse_lists():
    assert REVERSE_QUESTIONS[GuideType.I] == frozenset()
    assert REVERSE_QUESTIONS[GuideType.II] == frozenset(range(18, 34))
    assert {1, 4, 23, 28, 30, 57}.issubset(REVERSE_QUESTIONS[GuideType.III])
    assert not {2, 29, 58, 72} & REVERSE_QUESTIONS[GuideType.III]


@pytest.mark.parametrize(
    "label,expected",
    [("Siempre", 4), ("Casi siempre", 3), ("Algunas veces", 2), ("Casi nunca", 1), ("Nunca", 0)],
)
def test_likert_ordinals(label, expected):
    assert score_question(Response.of(2, label), "II") == expected


@pytest.mark.parametrize("label", ["Siempre", "Casi siempre", "Algunas veces", "Casi nunca", "Nunca"])
def test_reverse_is_mirror(label):
    answer = Answer.from_label(label)
    assert score_question(Response.of(20, label), "II") == 4 - answer.ordinal
    assert score_question(Response.of(20, label), "II") == answer.mirrored.ordinal


def test_yes_no_scores():
    assert score_question(Response.of(1, "Sí"), "I") == 1
    assert score_question(Response.of(1, "No"), "I") == 0


def test_unrecognised_label_scores_zero():
    response = Response.of(5, "Siempres")
    assert response.answer is None
    assert score_question(response, "II") == 0


def test_wrong_type_scores_zero_when_expected_type_given():
    assert score_question(Response.of(1, "Siempre"), "I", ResponseType.YES_NO) == 0
    assert score_question(Response.of(3, "Sí"), "II", ResponseType.LIKERT) == 0


def test_score_category_ignores_foreign_and_missing_questions():
    work_environment = get_category_mapping("II").category("work-environment")
    given = [Response.of(1, "Siempre"), Response.of(2, "Nunca"), Response.of(40, "Siempre")]
    assert score_category(work_environment, given, "II") == 4


def test_score_category_last_response_wins():
    work_environment = get_category_mapping("II").category("work-environment")
    given = [Response.of(1, "Siempre"), Response.of(1, "Casi nunca")]
    assert score_category(work_environment, given, "II") == 1


def test_category_boundary_belongs_to_higher_tier():
    thresholds = Thresholds(nulo=0, bajo=3, medio=5, alto=7, muy_alto=9)
    assert classify_category_risk(2, thresholds).tier is RiskTier.NULO
    assert classify_category_risk(3, thresholds).tier is RiskTier.BAJO
    assert classify_category_risk(5, thresholds).tier is RiskTier.MEDIO
    assert classify_category_risk(7, thresholds).tier is RiskTier.ALTO
    assert classify_category_risk(9, thresholds).tier is RiskTier.MUY_ALTO
    assert classify_category_risk(16, thresholds).tier is RiskTier.MUY_ALTO


@pytest.mark.parametrize(
    "guide_type,score,tier",
    [
        ("I", 0, RiskTier.NULO),
        ("I", 2, RiskTier.NULO),
        ("I", 3, RiskTier.MEDIO),
        ("I", 5, RiskTier.ALTO),
        ("I", 15, RiskTier.ALTO),
        ("II", 19, RiskTier.NULO),
        ("II", 20, RiskTier.BAJO),
        ("II", 50, RiskTier.MEDIO),
        ("II", 75, RiskTier.ALTO),
        ("II", 90, RiskTier.MUY_ALTO),
        ("III", 24, RiskTier.NULO),
        ("III", 25, RiskTier.BAJO),
        ("III", 70, RiskTier.MEDIO),
        ("III", 100, RiskTier.ALTO),
        ("III", 130, RiskTier.MUY_ALTO),
    ],
)
def test_overall_breakpoints(guide_type, score, tier):
    assert classify_overall_risk(score, guide_type).tier is tier


def test_guide_i_never_reports_bajo_or_muy_alto():
    tiers = {classify_overall_risk(score, "I").tier for score in range(0, 16)}
    assert tiers == {RiskTier.NULO, RiskTier.MEDIO, RiskTier.ALTO}


def test_empty_responses_give_zero_report():
    result = generate_report("III", [], total_questions=72)
    assert result.overall_score == 0
    assert result.answered_questions == 0
    assert all(c.score == 0 for c in result.category_risks)
    assert result.overall_risk.tier is RiskTier.NULO


def test_report_categories_follow_mapping_order():
    result = generate_report("III", [], total_questions=72)
    expected = [c.category_id for c in get_category_mapping("III").categories]
    assert [c.category_id for c in result.category_risks] == expected


def test_overall_score_is_sum_of_categories():
    result = generate_report("II", responses(GuideType.II, "Siempre"), total_questions=46)
    assert result.overall_score == sum(c.score for c in result.category_risks)
    # 46 questions at 4, minus the 16 reverse-scored ones at 0
    assert result.overall_score == (46 - 16) * 4
    assert result.overall_risk.tier is RiskTier.MUY_ALTO
    assert all(c.score <= c.max_score for c in result.category_risks)


def test_trigger_pseudo_question_is_not_counted():
    result = generate_report(
        "II", [Response.of(0, "Sí"), Response.of(41, "Siempre")], total_questions=46
    )
    assert result.answered_questions == 1
    assert category(result, "violence").score == 4


def test_recommendations():
    assert get_recommendations(RiskTier.MUY_ALTO)[0] == "Implementar acciones correctivas inmediatas"
    assert get_recommendations("High", "en")[0] == "Implement short-term preventive and corrective measures"
    assert len(get_recommendations("Nulo")) == 3
    with pytest.raises(ValueError):
        get_recommendations("Extreme")


def all_categories():
    return [
        (guide_type, c)
        for guide_type in GuideType
        for c in get_category_mapping(guide_type).categories
    ]


def test_category_tier_never_drops_as_score_rises():
    for guide_type, c in all_categories():
        tiers = [classify_category_risk(s, c.thresholds).tier for s in range(c.max_score + 1)]
        assert tiers == sorted(tiers), f"Guide {guide_type.value} '{c.category_id}'"


@pytest.mark.parametrize("answer", list(Answer), ids=lambda a: a.name)
def test_uniform_answers_stay_within_category_bounds(answer):
    for guide_type, c in all_categories():
        if answer.response_type is not c.response_type:
            continue
        given = [Response.of(n, answer.label) for n in c.questions]
        score = score_category(c, given, guide_type)
        assert 0 <= score <= c.max_score, f"Guide {guide_type.value} '{c.category_id}'"


def test_same_input_gives_same_report():
    given = responses(GuideType.III, "Casi siempre") + [Response.of(1, "Nunca")]

    first = generate_report("III", given, total_questions=72)
    second = generate_report("III", given, total_questions=72)

    assert first.overall_score == second.overall_score
    assert first.overall_risk == second.overall_risk
    assert first.category_risks == second.category_risks
    assert first.answered_questions == second.answered_questions
