"""瞌睡报警系统入口文件"""

import argparse
import json
import logging
import sys

import cv2

from alerts.alert_sink import AlertSink
from detectors.eye_analyzer import EyeAnalyzer
from detectors.face_detector import FaceDetector
from display.renderer import DisplayRenderer
from evaluators.enable_switch import EnableSwitch
from evaluators.tracking_session import TrackingSession
from models.data_models import DetectorConfig

logger = logging.getLogger(__name__)

# 默认配置
_DEFAULTS = {
    "open_threshold": 0.50,
    "max_count": 28,
    "high_watermark": 20,
    "face_lost_icon_threshold": 5,
    "decay": 3,
    "increment": 1,
    "ear_closed": 0.15,
    "ear_open": 0.30,
    "max_missing_frames": 90,
    "notify_cooldown": 3.0,
    "enabled": True,
}

_DETECTOR_KEYS = (
    "open_threshold",
    "max_count",
    "high_watermark",
    "face_lost_icon_threshold",
    "decay",
    "increment",
)


def as_bool(value) -> bool:
    """只接受真正的布尔值，JSON 中的 "false" 等字符串视为非法。"""
    if isinstance(value, bool):
        return value
    raise ValueError(f"需要布尔值: {value!r}")


_CONVERTERS = {
    "open_threshold": float,
    "max_count": int,
    "high_watermark": int,
    "face_lost_icon_threshold": int,
    "decay": int,
    "increment": int,
    "ear_closed": float,
    "ear_open": float,
    "max_missing_frames": int,
    "notify_cooldown": float,
    "enabled": as_bool,
}


def convert_value(key, value):
    """按字段类型转换单个配置值，非法时抛出 ValueError。"""
    try:
        converted = _CONVERTERS[key](value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} 取值无效: {value!r}") from None
    if key in ("max_missing_frames", "notify_cooldown") and converted < 0:
        raise ValueError(f"{key} 不能为负数: {value!r}")
    return converted


def normalize_config(config: dict) -> dict:
    """校验并转换整份配置，未知字段原样保留。"""
    return {
        key: convert_value(key, value) if key in _CONVERTERS else value
        for key, value in config.items()
    }


def build_detector_config(config: dict) -> DetectorConfig:
    """从配置字典中取出检测器参数。"""
    return DetectorConfig(**{key: config[key] for key in _DETECTOR_KEYS})


class DetectionSystem:
    """瞌睡报警系统主程序：摄像头 -> 关键点 -> 睁眼概率 -> 状态机 -> 报警/渲染。"""

    def __init__(self, config_path=None, config=None):
        self._cap = None

        if config is not None:
            self.config = normalize_config(config)
        else:
            self.config = self._load_config(config_path)
        self.switch = EnableSwitch(self.config["enabled"])
        self.face_detector = FaceDetector()
        self._init_modules(self.config)

    @staticmethod
    def _build_modules(config):
        """按配置构建 (eye_analyzer, session, sink, renderer)；参数非法时抛出异常。"""
        eye_analyzer = EyeAnalyzer(
            ear_closed=config["ear_closed"],
            ear_open=config["ear_open"],
        )
        detector_config = build_detector_config(config)
        session = TrackingSession(
            detector_config,
            max_missing_frames=config["max_missing_frames"],
        )
        sink = AlertSink(notify_cooldown=config["notify_cooldown"])
        renderer = DisplayRenderer(max_count=detector_config.max_count)
        return eye_analyzer, session, sink, renderer

    def _init_modules(self, config):
        self.eye_analyzer, self.session, self.sink, self.renderer = self._build_modules(config)

    @staticmethod
    def _load_config(config_path):
        """从 JSON 配置文件加载参数，缺失字段使用默认值。"""
        config = dict(_DEFAULTS)

        if config_path is None:
            return config

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.warning("配置文件不存在 %s，使用默认配置", config_path)
            return config
        except json.JSONDecodeError:
            logger.warning("配置文件格式错误 %s，使用默认配置", config_path)
            return config

        # 用配置文件中的值覆盖默认值，非法值保留默认
        for key in _DEFAULTS:
            if key in data and data[key] is not None:
                try:
                    config[key] = convert_value(key, data[key])
                except ValueError as e:
                    logger.warning("配置项无效，使用默认值: %s", e)

        return config

    def process_frame(self, frame):
        """
        处理一帧图像。

        Returns:
            (rendered, decision, observation)
        """
        landmarks = self.face_detector.detect(frame)
        observation = self.eye_analyzer.observe(landmarks)
        enabled = self.switch.is_on()

        if landmarks is not None:
            self.sink.show_face_graphic()

        decision = self.session.update(observation, enabled)
        self.sink.apply(decision)

        rendered = self.renderer.render(
            frame, landmarks, decision, self.sink,
            enabled=enabled, observation=observation,
        )
        return rendered, decision, observation

    def run(self):
        """启动主检测循环。"""
        self._cap = cv2.VideoCapture(0)
        self._cap.set(cv2.CAP_PROP_FPS, 30)

        if not self._cap.isOpened():
            print("无法打开摄像头")
            sys.exit(1)

        try:
            self._main_loop()
        finally:
            self.stop()

    def _main_loop(self):
        """视频流处理主循环。q 退出，e 切换检测开关。"""
        while True:
            ret, frame = self._cap.read()
            if not ret:
                continue

            rendered, _, _ = self.process_frame(frame)
            cv2.imshow("瞌睡报警系统", rendered)

            key = cv2.waitKey(1) & 0xFF
            if key == ord("q"):
                break
            if key == ord("e"):
                self.switch.toggle()

    def stop(self):
        """结束跟踪、释放摄像头资源、关闭窗口和人脸检测器。"""
        self.sink.apply(self.session.close())
        if self._cap is not None and self._cap.isOpened():
            self._cap.release()
        cv2.destroyAllWindows()
        self.face_detector.close()


def main():
    parser = argparse.ArgumentParser(description="瞌睡报警系统")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON 配置文件路径",
    )
    parser.add_argument(
        "--disabled",
        action="store_true",
        help="启动时关闭检测开关（按 e 开启）",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    system = DetectionSystem(config_path=args.config)
    if args.disabled:
        system.switch.set(False)
    system.run()


if __name__ == "__main__":
    main()
