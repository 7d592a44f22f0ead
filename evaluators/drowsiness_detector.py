"""闭眼防抖与报警状态机"""

import logging
from typing import List, Optional

from models.data_models import (
    AlertDecision,
    AlertState,
    DetectorConfig,
    Directive,
    EyesVisible,
    FaceAbsent,
    FrameObservation,
)

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = DetectorConfig()

THRESHOLD_OPEN = _DEFAULT_CONFIG.open_threshold
MAX = _DEFAULT_CONFIG.max_count
HIGH_WATERMARK = _DEFAULT_CONFIG.high_watermark
FACE_LOST_ICON_THRESHOLD = _DEFAULT_CONFIG.face_lost_icon_threshold
DECAY = _DEFAULT_CONFIG.decay
INCREMENT = _DEFAULT_CONFIG.increment


class DrowsinessDetector:
    """
    维护疲劳计数器，逐帧输出报警指令。

    闭眼一帧计数 +1，睁眼一帧计数 -3，范围 [0, MAX]。
    计数超过 HIGH_WATERMARK 时每帧发出 NOTIFY 并显示闭眼图标，
    达到 MAX 时启动声音报警，计数回落到 0 后才停止。
    人脸丢失时若报警未启动则立即启动，计数保持不变。
    """

    def __init__(self, config: Optional[DetectorConfig] = None):
        self.config = config or DetectorConfig()
        self._counter = 0
        self._sound_active = False
        self._enabled = False

    @property
    def counter(self) -> int:
        return self._counter

    @property
    def sound_active(self) -> bool:
        return self._sound_active

    @property
    def state(self) -> AlertState:
        if not self._enabled:
            return AlertState.IDLE
        if self._sound_active:
            return AlertState.SOS
        if self._counter > self.config.high_watermark:
            return AlertState.DROWSY
        return AlertState.IDLE

    def observe(self, obs: FrameObservation, enabled: bool) -> AlertDecision:
        """
        处理一帧观测结果。

        Args:
            obs: EyesVisible 或 FaceAbsent
            enabled: 本次调用读取到的操作员开关快照

        Returns:
            AlertDecision，directives 按发出顺序排列
        """
        enabled = bool(enabled)
        if enabled != self._enabled:
            logger.info("检测开关: %s", "开启" if enabled else "关闭")
        self._enabled = enabled

        directives: List[Directive] = []

        if not enabled:
            # 关闭期间计数冻结，不清零
            if self._sound_active:
                self._stop_alert(directives)
            directives.append(Directive.SHOW_OPEN_ICON)
            return self._decision(directives)

        if isinstance(obs, EyesVisible):
            self._observe_eyes(obs, directives)
        elif isinstance(obs, FaceAbsent):
            self._observe_absent(directives)
        else:
            raise TypeError(f"未知的观测类型: {type(obs).__name__}")

        return self._decision(directives)

    def observe_raw(
        self,
        eyes_visible: bool,
        left_open_prob: Optional[float],
        right_open_prob: Optional[float],
        enabled: bool,
    ) -> AlertDecision:
        """以扁平参数形式调用 observe()，缺失的概率按闭眼处理。"""
        if eyes_visible:
            obs: FrameObservation = EyesVisible(left_open_prob, right_open_prob)
        else:
            obs = FaceAbsent()
        return self.observe(obs, enabled)

    def teardown(self) -> AlertDecision:
        """跟踪结束：无条件停止报警并移除人脸图层。"""
        if self._sound_active:
            logger.info("跟踪结束，停止报警")
        self._sound_active = False
        return self._decision([Directive.STOP_ALERT, Directive.REMOVE_FACE_GRAPHIC])

    def _observe_eyes(self, obs: EyesVisible, directives: List[Directive]) -> None:
        cfg = self.config

        if self._counter == cfg.max_count and not self._sound_active:
            self._start_alert(directives)

        threshold = cfg.open_threshold
        if obs.left_open > threshold and obs.right_open > threshold:
            logger.debug("睁眼")
            directives.append(Directive.SHOW_OPEN_ICON)
            self._counter = max(0, self._counter - cfg.decay)
            if self._counter == 0 and self._sound_active:
                self._stop_alert(directives)
            return

        # 任意一只眼低于阈值即视为闭眼
        self._counter = min(cfg.max_count, self._counter + cfg.increment)
        logger.debug("闭眼: counter=%d", self._counter)
        if self._counter > cfg.high_watermark:
            # 每帧重复发出，不做边沿检测
            directives.append(Directive.NOTIFY)
            directives.append(Directive.SHOW_CLOSED_ICON)
        if self._counter == cfg.max_count and not self._sound_active:
            self._start_alert(directives)

    def _observe_absent(self, directives: List[Directive]) -> None:
        if self._counter > self.config.face_lost_icon_threshold:
            directives.append(Directive.SHOW_CLOSED_ICON)
        if not self._sound_active:
            logger.warning("人脸丢失，触发报警 (counter=%d)", self._counter)
            directives.append(Directive.NOTIFY)
            self._start_alert(directives)
        directives.append(Directive.REMOVE_FACE_GRAPHIC)

    def _start_alert(self, directives: List[Directive]) -> None:
        logger.info("启动报警 (counter=%d)", self._counter)
        self._sound_active = True
        directives.append(Directive.START_ALERT)

    def _stop_alert(self, directives: List[Directive]) -> None:
        logger.info("停止报警 (counter=%d)", self._counter)
        self._sound_active = False
        directives.append(Directive.STOP_ALERT)

    def _decision(self, directives: List[Directive]) -> AlertDecision:
        return AlertDecision(
            directives=directives,
            state=self.state,
            counter=self._counter,
            sound_active=self._sound_active,
        )
