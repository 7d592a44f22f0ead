"""眼睛状态分析模块，将 EAR 值换算为睁眼概率"""

import math
from typing import List, Optional, Tuple

from models.data_models import EyesVisible, FaceAbsent, FaceLandmarks, FrameObservation


class EyeAnalyzer:
    """计算单眼 EAR，并线性映射到 [0, 1] 的睁眼概率"""

    def __init__(self, ear_closed: float = 0.15, ear_open: float = 0.30):
        """
        Args:
            ear_closed: EAR 不高于此值时睁眼概率为 0
            ear_open: EAR 不低于此值时睁眼概率为 1
        """
        if ear_open <= ear_closed:
            raise ValueError(f"ear_open ({ear_open}) 必须大于 ear_closed ({ear_closed})")
        self.ear_closed = ear_closed
        self.ear_open = ear_open

    @staticmethod
    def calculate_ear(eye_points: List[Tuple[float, float]]) -> float:
        """
        计算单只眼睛的 EAR 值。

        公式: EAR = (|p2-p6| + |p3-p5|) / (2 * |p1-p4|)

        Args:
            eye_points: 6 个眼睛轮廓关键点 [(x,y), ...]

        Returns:
            EAR 值，分母为零时返回 0.0
        """
        p1, p2, p3, p4, p5, p6 = eye_points

        vertical_1 = math.dist(p2, p6)
        vertical_2 = math.dist(p3, p5)
        horizontal = math.dist(p1, p4)

        if horizontal == 0.0:
            return 0.0

        return (vertical_1 + vertical_2) / (2.0 * horizontal)

    def openness(self, ear: float) -> float:
        """EAR -> 睁眼概率"""
        p = (ear - self.ear_closed) / (self.ear_open - self.ear_closed)
        return min(1.0, max(0.0, p))

    def observe(self, landmarks: Optional[FaceLandmarks]) -> FrameObservation:
        """将一帧关键点转换为检测器的观测输入。"""
        if landmarks is None:
            return FaceAbsent()
        left = self.openness(self.calculate_ear(landmarks.left_eye))
        right = self.openness(self.calculate_ear(landmarks.right_eye))
        return EyesVisible(left_open=left, right_open=right)
