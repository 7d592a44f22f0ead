"""报警执行端：消费检测器指令，驱动声音、系统通知和图标状态"""

import logging
import time
from typing import Callable, Optional

from models.data_models import AlertDecision, Directive

logger = logging.getLogger(__name__)


class AlertSink:
    """
    将 Directive 转换为实际副作用。

    声音报警的启动/停止是幂等的；通知按 notify_cooldown 秒去抖，
    因为检测器在水位线以上每帧都会发出 NOTIFY。
    """

    def __init__(
        self,
        on_alert_start: Optional[Callable[[], None]] = None,
        on_alert_stop: Optional[Callable[[], None]] = None,
        on_notify: Optional[Callable[[], None]] = None,
        notify_cooldown: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._on_alert_start = on_alert_start
        self._on_alert_stop = on_alert_stop
        self._on_notify = on_notify
        self.notify_cooldown = notify_cooldown
        self._clock = clock

        self.alert_active = False
        self.icon = "open"
        self.face_graphic_visible = True
        self.notify_count = 0
        self._last_notify: Optional[float] = None

    def apply(self, decision: AlertDecision) -> None:
        """按顺序执行一次决策中的全部指令。"""
        for directive in decision.directives:
            self.handle(directive)

    def handle(self, directive: Directive) -> None:
        if directive is Directive.START_ALERT:
            self.start_alert()
        elif directive is Directive.STOP_ALERT:
            self.stop_alert()
        elif directive is Directive.NOTIFY:
            self.notify()
        elif directive is Directive.SHOW_OPEN_ICON:
            self.icon = "open"
        elif directive is Directive.SHOW_CLOSED_ICON:
            self.icon = "closed"
        elif directive is Directive.REMOVE_FACE_GRAPHIC:
            self.face_graphic_visible = False

    def show_face_graphic(self) -> None:
        """重新检测到人脸时恢复人脸图层"""
        self.face_graphic_visible = True

    def start_alert(self) -> None:
        if self.alert_active:
            return
        self.alert_active = True
        logger.warning("声音报警开启")
        self._call(self._on_alert_start)

    def stop_alert(self) -> None:
        if not self.alert_active:
            return
        self.alert_active = False
        logger.info("声音报警关闭")
        self._call(self._on_alert_stop)

    def notify(self) -> bool:
        """发送系统通知，冷却期内的重复请求被忽略。返回是否实际发送。"""
        now = self._clock()
        if self._last_notify is not None and now - self._last_notify < self.notify_cooldown:
            return False
        self._last_notify = now
        self.notify_count += 1
        logger.warning("Sos! 请勿瞌睡")
        self._call(self._on_notify)
        return True

    @staticmethod
    def _call(callback: Optional[Callable[[], None]]) -> None:
        if callback is None:
            return
        try:
            callback()
        except Exception:
            # 副作用失败不影响检测循环
            logger.exception("报警回调执行失败")
