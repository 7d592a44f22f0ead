"""阈值校准模块，利用标注数据集的 ROC 分析优化睁眼概率阈值"""

import argparse
import json
import logging
import math
import os
from datetime import datetime
from typing import List, Optional, Tuple

import cv2
import numpy as np
from sklearn.metrics import accuracy_score, recall_score, roc_curve

from detectors.eye_analyzer import EyeAnalyzer
from detectors.face_detector import FaceDetector
from models.data_models import CalibrationResult

logger = logging.getLogger(__name__)

_DEFAULT_THRESHOLD = 0.5

# 子目录 -> 标签
_LABEL_DIRS = {
    "open": "open",
    "closed": "closed",
}


def compute_stats(values: list) -> dict:
    """
    计算一组数值的统计信息。

    Args:
        values: 非空浮点数列表

    Returns:
        {"mean": float, "std": float, "min": float, "max": float}
    """
    n = len(values)
    mean = sum(values) / n
    std = math.sqrt(sum((x - mean) ** 2 for x in values) / n)
    return {
        "mean": mean,
        "std": std,
        "min": min(values),
        "max": max(values),
    }


class ThresholdCalibrator:
    """加载 open/closed 图像集，统计睁眼概率分布，通过 ROC 分析输出最优阈值"""

    def __init__(self, eye_analyzer: Optional[EyeAnalyzer] = None):
        self.eye_analyzer = eye_analyzer or EyeAnalyzer()
        # (openness, label)，openness 取两眼中较小者，与检测器"任一眼闭合即闭眼"一致
        self._samples: List[Tuple[float, str]] = []
        self._dataset_path: str = ""
        self._calibration_result: Optional[CalibrationResult] = None

    def load_dataset(self, dataset_path: str) -> None:
        """
        加载数据集并提取每张图像的睁眼概率。

        Args:
            dataset_path: 数据集根目录，包含 open/ 与 closed/ 子目录
        """
        if not os.path.isdir(dataset_path):
            raise ValueError(f"数据集路径无效: {dataset_path}")

        self._dataset_path = dataset_path
        face_detector = FaceDetector(static_image_mode=True)

        try:
            for subdir, label in _LABEL_DIRS.items():
                dir_path = os.path.join(dataset_path, subdir)
                if not os.path.isdir(dir_path):
                    logger.warning("子目录不存在: %s", dir_path)
                    continue
                for filename in sorted(os.listdir(dir_path)):
                    value = self._extract_openness(os.path.join(dir_path, filename), face_detector)
                    if value is not None:
                        self._samples.append((value, label))
        finally:
            face_detector.close()

        logger.info("数据集加载完成: 样本 %d 条", len(self._samples))

    def _extract_openness(self, filepath: str, face_detector: FaceDetector) -> Optional[float]:
        """从单张图像提取睁眼概率，无法读取或无人脸时返回 None"""
        image = cv2.imread(filepath)
        if image is None:
            logger.warning("无法读取图像: %s", filepath)
            return None

        landmarks = face_detector.detect(image)
        if landmarks is None:
            return None

        left = self.eye_analyzer.openness(self.eye_analyzer.calculate_ear(landmarks.left_eye))
        right = self.eye_analyzer.openness(self.eye_analyzer.calculate_ear(landmarks.right_eye))
        return min(left, right)

    def compute_statistics(self) -> dict:
        """
        按标签统计睁眼概率分布。

        Returns:
            {"open": {mean, std, min, max}, "closed": {...}}
        """
        groups = {}  # type: dict
        for value, label in self._samples:
            groups.setdefault(label, []).append(value)
        return {label: compute_stats(values) for label, values in groups.items()}

    def optimize_threshold(self) -> CalibrationResult:
        """
        基于 ROC 曲线输出最优睁眼概率阈值。

        使用 Youden's J statistic (max(tpr - fpr))；闭眼为正类，
        概率不高于阈值即判为闭眼。
        """
        stats = self.compute_statistics()

        optimal, acc, rec = _DEFAULT_THRESHOLD, 0.0, 0.0
        if self._samples:
            values = np.array([v for v, _ in self._samples])
            labels = np.array([1 if lab == "closed" else 0 for _, lab in self._samples])

            if len(np.unique(labels)) == 2:
                # 概率越低越可能闭眼
                fpr, tpr, thresholds = roc_curve(labels, -values)
                best_idx = int(np.argmax(tpr - fpr))
                optimal = float(min(1.0, max(0.0, -thresholds[best_idx])))

                preds = (values <= optimal).astype(int)
                acc = float(accuracy_score(labels, preds))
                rec = float(recall_score(labels, preds))

        self._calibration_result = CalibrationResult(
            optimal_open_threshold=float(optimal),
            accuracy=acc,
            recall=rec,
            distribution=stats,
        )
        return self._calibration_result

    def export_config(self, output_path: str, base_config: Optional[dict] = None) -> None:
        """
        导出 JSON 配置文件，可直接作为 main.py --config 使用。

        Args:
            output_path: 输出 JSON 文件路径
            base_config: 需要保留的其他配置项
        """
        if self._calibration_result is None:
            self.optimize_threshold()

        result = self._calibration_result

        config = dict(base_config or {})
        config["open_threshold"] = result.optimal_open_threshold
        config["ear_closed"] = self.eye_analyzer.ear_closed
        config["ear_open"] = self.eye_analyzer.ear_open
        config["calibration_info"] = {
            "accuracy": result.accuracy,
            "recall": result.recall,
            "samples": len(self._samples),
            "calibrated_at": datetime.now().isoformat(),
            "dataset": self._dataset_path,
        }

        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=4, ensure_ascii=False)

        logger.info("配置文件已导出: %s", output_path)


def main():
    parser = argparse.ArgumentParser(description="睁眼概率阈值校准")
    parser.add_argument("dataset", help="包含 open/ 与 closed/ 子目录的数据集路径")
    parser.add_argument("--output", default="config/calibrated.json", help="输出配置文件路径")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    calibrator = ThresholdCalibrator()
    calibrator.load_dataset(args.dataset)
    result = calibrator.optimize_threshold()
    print(f"最优阈值: {result.optimal_open_threshold:.3f} "
          f"(accuracy={result.accuracy:.3f}, recall={result.recall:.3f})")
    calibrator.export_config(args.output)


if __name__ == "__main__":
    main()
