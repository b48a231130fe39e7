from typing import List, Optional

from src.thumbnails.models import ApprovalDecision, ModerationResult, PolicyConfig


class ApprovalPolicy:
    """Decides whether a moderated image may get a thumbnail.

    Pure: the decision depends only on the config and the ModerationResult.
    An image is approved only when every signal is within bounds; a missing
    classification score counts as out of bounds, empty text or face
    detections do not.
    """

    def __init__(self, config: Optional[PolicyConfig] = None):
        self.config = config or PolicyConfig()
        self._blocked = [t.lower() for t in self.config.blocked_terms if t.strip()]

    def decide(self, result: ModerationResult) -> ApprovalDecision:
        reasons = self._classification_reasons(result)
        reasons += self._face_reasons(result)
        reasons += self._text_reasons(result)
        return ApprovalDecision(approved=not reasons, result=result, reasons=reasons)

    def _classification_reasons(self, result: ModerationResult) -> List[str]:
        c = result.classification
        reasons = []
        for name, score, limit in (
            ("adult", c.adult_score, self.config.adult_threshold),
            ("racy", c.racy_score, self.config.racy_threshold),
        ):
            if score is None:
                reasons.append(f"{name} score missing")
            elif score > limit:
                reasons.append(f"{name} score {score:.3f} above {limit}")

        if self.config.reject_flagged:
            if c.is_adult:
                reasons.append("classified as adult")
            if c.is_racy:
                reasons.append("classified as racy")
        return reasons

    def _face_reasons(self, result: ModerationResult) -> List[str]:
        count = result.face_detection.face_count
        if self.config.reject_faces and count > 0:
            return [f"{count} face(s) detected"]
        if self.config.max_faces is not None and count > self.config.max_faces:
            return [f"{count} faces detected, at most {self.config.max_faces} allowed"]
        return []

    def _text_reasons(self, result: ModerationResult) -> List[str]:
        if not self._blocked:
            return []
        # A term must match inside a single detection
        texts = [t.lower() for t in result.text_detection.all_text]
        return [f"blocked term '{term}' in text" for term in self._blocked if any(term in t for t in texts)]
