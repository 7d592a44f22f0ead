"""人脸关键点检测模块，基于 MediaPipe FaceMesh"""

from typing import Optional

import cv2
import mediapipe as mp
import numpy as np

from models.data_models import FaceLandmarks

# 眼睛轮廓关键点索引 (p1..p6)
LEFT_EYE_INDICES = [33, 160, 158, 133, 153, 144]
RIGHT_EYE_INDICES = [362, 385, 387, 263, 373, 380]


class FaceDetector:
    """使用 MediaPipe FaceMesh 跟踪画面中最大的一张人脸"""

    def __init__(
        self,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        static_image_mode: bool = False,
    ):
        self._face_mesh = mp.solutions.face_mesh.FaceMesh(
            static_image_mode=static_image_mode,
            max_num_faces=1,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
            refine_landmarks=False,
        )

    def detect(self, frame: np.ndarray) -> Optional[FaceLandmarks]:
        """
        检测单帧图像中的人脸关键点。

        Args:
            frame: BGR 格式的 OpenCV 图像帧

        Returns:
            FaceLandmarks；未检测到人脸时返回 None
        """
        h, w = frame.shape[:2]

        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        rgb_frame.flags.writeable = False

        results = self._face_mesh.process(rgb_frame)

        if not results.multi_face_landmarks:
            return None

        face = results.multi_face_landmarks[0]

        # 归一化坐标 -> 像素坐标
        all_landmarks = [(lm.x * w, lm.y * h) for lm in face.landmark]

        return FaceLandmarks(
            left_eye=[all_landmarks[i] for i in LEFT_EYE_INDICES],
            right_eye=[all_landmarks[i] for i in RIGHT_EYE_INDICES],
            all_landmarks=all_landmarks,
        )

    def close(self):
        """释放 MediaPipe 资源"""
        self._face_mesh.close()
