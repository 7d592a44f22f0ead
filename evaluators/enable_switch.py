"""操作员检测开关"""

import threading


class EnableSwitch:
    """线程安全的布尔开关，由控制界面修改，检测循环每帧读取一次快照。"""

    def __init__(self, initial: bool = False):
        self._lock = threading.Lock()
        self._on = bool(initial)

    def set(self, value: bool) -> None:
        with self._lock:
            self._on = bool(value)

    def toggle(self) -> bool:
        """翻转开关并返回新值"""
        with self._lock:
            self._on = not self._on
            return self._on

    def is_on(self) -> bool:
        with self._lock:
            return self._on

    def __bool__(self):
        return self.is_on()
