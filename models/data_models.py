"""核心数据模型定义"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


def clamp_probability(value: Optional[float]) -> float:
    """将概率值限制在 [0, 1]；None 与 NaN 视为 0.0（闭眼）。"""
    if value is None:
        return 0.0
    value = float(value)
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, value))


class FrameObservation:
    """单帧观测结果的基类：EyesVisible 或 FaceAbsent"""

    face_present = False


@dataclass(frozen=True)
class EyesVisible(FrameObservation):
    """检测到人脸，携带左右眼睁开概率"""
    left_open: float
    right_open: float

    face_present = True

    def __post_init__(self):
        # 越界输入在边界处截断而不是拒绝
        object.__setattr__(self, "left_open", clamp_probability(self.left_open))
        object.__setattr__(self, "right_open", clamp_probability(self.right_open))


@dataclass(frozen=True)
class FaceAbsent(FrameObservation):
    """本帧未检测到人脸"""


class AlertState(Enum):
    """报警状态"""
    IDLE = "idle"
    DROWSY = "drowsy"
    SOS = "sos"


class Directive(Enum):
    """检测器输出给展示层的副作用指令"""
    START_ALERT = "start_alert"
    STOP_ALERT = "stop_alert"
    NOTIFY = "notify"
    SHOW_OPEN_ICON = "show_open_icon"
    SHOW_CLOSED_ICON = "show_closed_icon"
    REMOVE_FACE_GRAPHIC = "remove_face_graphic"


@dataclass
class AlertDecision:
    """一次 observe()/teardown() 的结果快照"""
    directives: List[Directive]
    state: AlertState
    counter: int
    sound_active: bool

    def __contains__(self, directive: Directive) -> bool:
        return directive in self.directives


@dataclass(frozen=True)
class DetectorConfig:
    """疲劳计数器参数，默认值即调校后的报警策略"""
    open_threshold: float = 0.50
    max_count: int = 28
    high_watermark: int = 20
    face_lost_icon_threshold: int = 5
    decay: int = 3
    increment: int = 1

    def __post_init__(self):
        if not 0.0 <= self.open_threshold <= 1.0:
            raise ValueError(f"open_threshold 必须在 [0, 1] 内: {self.open_threshold}")
        if self.max_count <= 0:
            raise ValueError(f"max_count 必须为正数: {self.max_count}")
        if not 0 <= self.high_watermark < self.max_count:
            raise ValueError(
                f"high_watermark 必须在 [0, {self.max_count}) 内: {self.high_watermark}"
            )
        if self.decay <= 0 or self.increment <= 0:
            raise ValueError("decay 与 increment 必须为正数")


@dataclass
class FaceLandmarks:
    """人脸关键点检测结果"""
    left_eye: List[Tuple[float, float]]
    right_eye: List[Tuple[float, float]]
    all_landmarks: List[Tuple[float, float]] = field(default_factory=list)


@dataclass
class CalibrationResult:
    """睁眼概率阈值校准结果"""
    optimal_open_threshold: float
    accuracy: float
    recall: float
    distribution: dict
