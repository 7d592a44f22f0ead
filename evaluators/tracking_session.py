"""人脸跟踪会话：一条人脸轨迹对应一个 DrowsinessDetector 实例"""

import logging
from typing import Optional

from evaluators.drowsiness_detector import DrowsinessDetector
from models.data_models import (
    AlertDecision,
    AlertState,
    DetectorConfig,
    EyesVisible,
    FrameObservation,
)

logger = logging.getLogger(__name__)


class TrackingSession:
    """
    管理检测器的生命周期。

    首次看到人脸时创建检测器；连续 max_missing_frames 帧未检测到人脸
    视为轨迹结束，发出 teardown 指令并丢弃检测器，下次从计数 0 重新开始。
    """

    def __init__(self, config: Optional[DetectorConfig] = None, max_missing_frames: int = 90):
        self.config = config or DetectorConfig()
        self.max_missing_frames = max_missing_frames
        self._detector: Optional[DrowsinessDetector] = None
        self._missing_frames = 0

    @property
    def detector(self) -> Optional[DrowsinessDetector]:
        return self._detector

    @property
    def active(self) -> bool:
        return self._detector is not None

    def update(self, obs: FrameObservation, enabled: bool) -> AlertDecision:
        """转发一帧观测结果；无活动轨迹时返回空指令。"""
        if isinstance(obs, EyesVisible):
            self._missing_frames = 0
            if self._detector is None:
                logger.info("开始新的人脸跟踪")
                self._detector = DrowsinessDetector(self.config)
            return self._detector.observe(obs, enabled)

        if self._detector is None:
            return AlertDecision(directives=[], state=AlertState.IDLE, counter=0, sound_active=False)

        self._missing_frames += 1
        if self._missing_frames > self.max_missing_frames:
            logger.info("人脸持续丢失超过 %d 帧，结束跟踪", self.max_missing_frames)
            return self.close()
        return self._detector.observe(obs, enabled)

    def close(self) -> AlertDecision:
        """结束当前轨迹"""
        if self._detector is None:
            return AlertDecision(directives=[], state=AlertState.IDLE, counter=0, sound_active=False)
        decision = self._detector.teardown()
        self._detector = None
        self._missing_frames = 0
        return decision
