"""界面渲染模块 - 在视频帧上绘制关键点、眼睛图标、疲劳计数和报警横幅。"""

from typing import Optional

import cv2
import numpy as np

from alerts.alert_sink import AlertSink
from models.data_models import AlertDecision, AlertState, EyesVisible, FaceLandmarks, FrameObservation


def format_value(v: float) -> str:
    """格式化浮点数为两位小数字符串。"""
    return f"{v:.2f}"


class DisplayRenderer:
    """在视频帧上绘制检测结果和报警状态。"""

    _ICON_TEXT = {
        "open": "睁眼",
        "closed": "闭眼",
    }

    _ICON_TEXT_EN = {
        "open": "Open",
        "closed": "Closed",
    }

    # BGR
    _ICON_COLORS = {
        "open": (0, 255, 0),
        "closed": (0, 0, 255),
    }

    def __init__(self, font_path: str = "SimHei", max_count: int = 28):
        """初始化中文字体，字体不存在时回退到 OpenCV 默认英文字体。"""
        self.max_count = max_count
        self._pil_font = None
        self._pil_font_large = None
        self._use_pil = False

        try:
            from PIL import ImageFont

            font = self._try_load_font(font_path)
            if font is not None:
                self._pil_font = font
                self._pil_font_large = ImageFont.truetype(font.path, 48)
                self._use_pil = True
        except Exception:
            self._use_pil = False

    @staticmethod
    def _try_load_font(font_path: str):
        """尝试加载字体文件，返回 PIL ImageFont 或 None。"""
        from PIL import ImageFont

        try:
            return ImageFont.truetype(font_path, 20)
        except (OSError, IOError):
            pass

        common_paths = [
            "/usr/share/fonts/truetype/simhei/SimHei.ttf",
            "/usr/share/fonts/SimHei.ttf",
            "C:\\Windows\\Fonts\\simhei.ttf",
            "/System/Library/Fonts/STHeiti Medium.ttc",
        ]
        for path in common_paths:
            try:
                return ImageFont.truetype(path, 20)
            except (OSError, IOError):
                continue

        return None

    def render(
        self,
        frame: np.ndarray,
        landmarks: Optional[FaceLandmarks],
        decision: AlertDecision,
        sink: AlertSink,
        enabled: bool = True,
        observation: Optional[FrameObservation] = None,
    ) -> np.ndarray:
        """渲染检测结果到视频帧，返回渲染后的帧图像。"""
        output = frame.copy()

        if landmarks is not None and sink.face_graphic_visible:
            self._draw_landmarks(output, landmarks)

        self._draw_info(output, sink.icon, decision.counter, enabled)
        if isinstance(observation, EyesVisible):
            self._draw_probabilities(output, observation)
        self._draw_counter_bar(output, decision.counter)

        if decision.state is AlertState.SOS:
            self._draw_banner(output, "Sos! 请勿瞌睡！", "SOS! WAKE UP!", (0, 0, 255))
        elif decision.state is AlertState.DROWSY:
            self._draw_banner(output, "疲劳预警", "DROWSY", (0, 215, 255))

        return output

    @staticmethod
    def _draw_landmarks(frame: np.ndarray, landmarks: FaceLandmarks) -> None:
        """绘制双眼关键点（绿色小圆点）。"""
        for x, y in landmarks.left_eye + landmarks.right_eye:
            cv2.circle(frame, (int(x), int(y)), 2, (0, 255, 0), -1)

    def _draw_info(self, frame: np.ndarray, icon: str, counter: int, enabled: bool) -> None:
        """在左上角绘制眼睛状态、疲劳计数和开关状态。"""
        color = self._ICON_COLORS.get(icon, (0, 255, 0))

        if self._use_pil:
            lines = [
                f"眼睛: {self._ICON_TEXT.get(icon, icon)}",
                f"疲劳计数: {counter}/{self.max_count}",
                f"检测: {'开启' if enabled else '关闭'}",
            ]
            self._draw_pil_lines(frame, lines, x=10, y_start=30, color=color)
        else:
            lines = [
                f"Eyes: {self._ICON_TEXT_EN.get(icon, icon)}",
                f"Fatigue: {counter}/{self.max_count}",
                f"Detection: {'ON' if enabled else 'OFF'}",
            ]
            y = 30
            for text in lines:
                cv2.putText(
                    frame, text, (10, y),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.7, color, 2,
                )
                y += 30

    def _draw_probabilities(self, frame: np.ndarray, obs: EyesVisible) -> None:
        """在右上角绘制左右眼睁开概率。"""
        w = frame.shape[1]
        text = f"L: {format_value(obs.left_open)}  R: {format_value(obs.right_open)}"
        cv2.putText(
            frame, text, (w - 220, 30),
            cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 0), 2,
        )

    def _draw_counter_bar(self, frame: np.ndarray, counter: int) -> None:
        """在底部绘制疲劳计数进度条。"""
        h, w = frame.shape[:2]
        x1, y1 = 10, h - 30
        x2, y2 = w - 10, h - 15
        ratio = min(1.0, max(0.0, counter / float(self.max_count)))
        fill_x = x1 + int((x2 - x1) * ratio)
        cv2.rectangle(frame, (x1, y1), (x2, y2), (200, 200, 200), 1)
        if fill_x > x1:
            color = (0, 0, 255) if ratio >= 1.0 else (0, 215, 255)
            cv2.rectangle(frame, (x1, y1), (fill_x, y2), color, -1)

    def _draw_banner(self, frame: np.ndarray, text: str, text_en: str, color: tuple) -> None:
        """在画面中央显示大字体警告。"""
        h, w = frame.shape[:2]

        if self._use_pil:
            from PIL import Image, ImageDraw

            img_pil = Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
            draw = ImageDraw.Draw(img_pil)
            bbox = draw.textbbox((0, 0), text, font=self._pil_font_large)
            text_w = bbox[2] - bbox[0]
            text_h = bbox[3] - bbox[1]
            x = (w - text_w) // 2
            y = (h - text_h) // 2
            draw.text((x, y), text, font=self._pil_font_large, fill=(color[2], color[1], color[0]))
            frame[:] = cv2.cvtColor(np.array(img_pil), cv2.COLOR_RGB2BGR)
        else:
            font_scale = 1.5
            thickness = 3
            (text_w, text_h), _ = cv2.getTextSize(
                text_en, cv2.FONT_HERSHEY_SIMPLEX, font_scale, thickness
            )
            x = (w - text_w) // 2
            y = (h + text_h) // 2
            cv2.putText(
                frame, text_en, (x, y),
                cv2.FONT_HERSHEY_SIMPLEX, font_scale, color, thickness,
            )

    def _draw_pil_lines(
        self,
        frame: np.ndarray,
        lines: list,
        x: int,
        y_start: int,
        color: tuple,
    ) -> None:
        """使用 PIL 在帧上绘制多行文字（BGR color -> RGB fill）。"""
        from PIL import Image, ImageDraw

        img_pil = Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        draw = ImageDraw.Draw(img_pil)
        fill = (color[2], color[1], color[0])
        y = y_start
        for line in lines:
            draw.text((x, y), line, font=self._pil_font, fill=fill)
            y += 28
        frame[:] = cv2.cvtColor(np.array(img_pil), cv2.COLOR_RGB2BGR)
