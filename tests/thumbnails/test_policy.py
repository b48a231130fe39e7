from src.thumbnails.models import ClassificationResult, ModerationResult, PolicyConfig
from src.thumbnails.policy import ApprovalPolicy
from tests.thumbnails.factories import IMAGE_URL, make_result


def test_clean_image_is_approved():
    decision = ApprovalPolicy().decide(make_result())
    assert decision.approved
    assert decision.reasons == []
    assert decision.result.image_url == IMAGE_URL


def test_empty_detections_are_within_bounds():
    """Nothing found by OCR or face detection is not a reason to reject."""
    decision = ApprovalPolicy().decide(make_result(text="", faces=0))
    assert decision.approved


def test_adult_score_above_threshold_rejects():
    decision = ApprovalPolicy(PolicyConfig(adult_threshold=0.5)).decide(make_result(adult=0.93))
    assert not decision.approved
    assert any("adult score" in r for r in decision.reasons)


def test_score_equal_to_threshold_is_allowed():
    decision = ApprovalPolicy(PolicyConfig(racy_threshold=0.4)).decide(make_result(racy=0.4))
    assert decision.approved


def test_missing_score_is_inconclusive():
    base = make_result()
    result = ModerationResult(
        image_url=base.image_url,
        classification=ClassificationResult(),
        text_detection=base.text_detection,
        face_detection=base.face_detection,
    )
    decision = ApprovalPolicy().decide(result)
    assert not decision.approved
    assert "adult score missing" in decision.reasons
    assert "racy score missing" in decision.reasons


def test_review_flags():
    flagged = make_result(adult=0.1, racy=0.1, is_racy=True)

    assert not ApprovalPolicy().decide(flagged).approved
    assert ApprovalPolicy(PolicyConfig(reject_flagged=False)).decide(flagged).approved


def test_faces():
    with_faces = make_result(faces=2)

    assert ApprovalPolicy().decide(with_faces).approved
    assert not ApprovalPolicy(PolicyConfig(reject_faces=True)).decide(with_faces).approved
    assert not ApprovalPolicy(PolicyConfig(max_faces=1)).decide(with_faces).approved
    assert ApprovalPolicy(PolicyConfig(max_faces=2)).decide(with_faces).approved


def test_blocked_terms_match_text_and_candidates():
    policy = ApprovalPolicy(PolicyConfig(blocked_terms=["Casino", "  "]))

    assert not policy.decide(make_result(text="Visit our CASINO tonight")).approved
    assert not policy.decide(make_result(candidates=["casino"])).approved
    assert policy.decide(make_result(text="Family picnic")).approved


def test_blocked_term_does_not_span_detections():
    policy = ApprovalPolicy(PolicyConfig(blocked_terms=["free money"]))

    assert policy.decide(make_result(text="free", candidates=["money"])).approved
    assert not policy.decide(make_result(text="Free Money inside", candidates=["money"])).approved


def test_all_reasons_are_reported():
    policy = ApprovalPolicy(PolicyConfig(reject_faces=True, blocked_terms=["sale"]))
    decision = policy.decide(make_result(adult=0.9, racy=0.9, faces=1, text="SALE"))
    assert len(decision.reasons) == 4


def test_decide_is_deterministic():
    policy = ApprovalPolicy(PolicyConfig(blocked_terms=["x"]))
    result = make_result(adult=0.7, text="x marks the spot")

    first = policy.decide(result)
    second = policy.decide(result)

    assert first == second
    assert first.result is result
