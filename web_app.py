"""Flask Web 前端 - 瞌睡报警系统"""

import datetime
import threading
import time

import cv2
from flask import Flask, Response, jsonify, render_template, request

from main import _DEFAULTS, DetectionSystem, as_bool, normalize_config
from models.data_models import AlertState, EyesVisible

app = Flask(__name__, template_folder="web/templates")

_STATE_TEXT = {
    AlertState.IDLE: "正常",
    AlertState.DROWSY: "疲劳预警",
    AlertState.SOS: "Sos 报警",
}


class WebDetectionSystem(DetectionSystem):
    """Web 版检测系统，支持 MJPEG 视频流推送、实时数据 API 和远程开关。"""

    MAX_LOG_ENTRIES = 200

    def __init__(self, config=None):
        super().__init__(config=config if config is not None else dict(_DEFAULTS))
        self._running = False
        self._thread = None
        self._lock = threading.Lock()
        # 帧处理与模块替换/关闭互斥
        self._pipeline_lock = threading.Lock()
        self._latest_frame = None
        self._latest_data = self._idle_data()
        self._logs = []
        self._log_lock = threading.Lock()
        self._prev_state = {"face_detected": False, "state": AlertState.IDLE.value, "sound_active": False}

    def _idle_data(self):
        return {
            "face_detected": False,
            "left_open": 0.0, "right_open": 0.0,
            "counter": 0, "max_count": self.config["max_count"],
            "state": AlertState.IDLE.value, "status": _STATE_TEXT[AlertState.IDLE],
            "sound_active": False, "icon": self.sink.icon,
            "enabled": self.switch.is_on(),
            "notify_count": self.sink.notify_count,
        }

    def start(self):
        """启动摄像头和处理线程。"""
        if self._running:
            return True
        self._cap = cv2.VideoCapture(0)
        if not self._cap.isOpened():
            self._add_log("danger", "无法打开摄像头")
            return False
        self._running = True
        self._add_log("info", "系统启动，摄像头已开启")
        self._thread = threading.Thread(target=self._process_loop, daemon=True)
        self._thread.start()
        return True

    def stop(self):
        """停止检测并结束当前跟踪。"""
        self._running = False
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        with self._pipeline_lock:
            if self._cap is not None and self._cap.isOpened():
                self._cap.release()
            self._cap = None
            self.sink.apply(self.session.close())
        self._add_log("info", "系统已停止")

    def set_enabled(self, value=None):
        """设置检测开关；value 为 None 时翻转，非布尔值抛出 ValueError。返回新值。"""
        if value is None:
            enabled = self.switch.toggle()
        else:
            enabled = as_bool(value)
            self.switch.set(enabled)
        self._add_log("info", "检测已开启" if enabled else "检测已关闭")
        return enabled

    def _process_loop(self):
        """后台处理循环。"""
        while self._running:
            if not self._cap or not self._cap.isOpened():
                break
            ret, frame = self._cap.read()
            if not ret:
                continue

            with self._pipeline_lock:
                rendered, decision, observation = self.process_frame(frame)
                data = {
                    "face_detected": isinstance(observation, EyesVisible),
                    "left_open": 0.0, "right_open": 0.0,
                    "counter": decision.counter, "max_count": self.config["max_count"],
                    "state": decision.state.value, "status": _STATE_TEXT[decision.state],
                    "sound_active": decision.sound_active, "icon": self.sink.icon,
                    "enabled": self.switch.is_on(),
                    "notify_count": self.sink.notify_count,
                }
            if isinstance(observation, EyesVisible):
                data["left_open"] = round(observation.left_open, 4)
                data["right_open"] = round(observation.right_open, 4)

            _, jpeg = cv2.imencode(".jpg", rendered, [cv2.IMWRITE_JPEG_QUALITY, 80])
            with self._lock:
                self._latest_data = data
                self._latest_frame = jpeg.tobytes()

            self._check_state_changes(data)

    def _add_log(self, level, message):
        """添加一条系统日志。level: info / warning / danger"""
        entry = {
            "time": datetime.datetime.now().strftime("%H:%M:%S"),
            "level": level,
            "message": message,
        }
        with self._log_lock:
            self._logs.append(entry)
            if len(self._logs) > self.MAX_LOG_ENTRIES:
                self._logs = self._logs[-self.MAX_LOG_ENTRIES:]

    def _check_state_changes(self, data):
        """检测状态变化并记录日志。"""
        prev = self._prev_state

        if data["face_detected"] and not prev["face_detected"]:
            self._add_log("info", "检测到人脸")
        elif not data["face_detected"] and prev["face_detected"]:
            self._add_log("warning", "人脸丢失")

        if data["state"] != prev["state"]:
            if data["state"] == AlertState.DROWSY.value:
                self._add_log("warning", f"疲劳预警 (计数={data['counter']})")
            elif data["state"] == AlertState.IDLE.value:
                self._add_log("info", "疲劳状态解除")

        if data["sound_active"] and not prev["sound_active"]:
            self._add_log("danger", "⚠️ Sos! 报警已启动")
        elif not data["sound_active"] and prev["sound_active"]:
            self._add_log("info", "报警已停止")

        self._prev_state = {
            "face_detected": data["face_detected"],
            "state": data["state"],
            "sound_active": data["sound_active"],
        }

    def get_logs(self, since=0):
        """获取日志，since 为起始索引。"""
        with self._log_lock:
            return self._logs[since:], len(self._logs)

    def get_frame(self):
        with self._lock:
            return self._latest_frame

    def get_data(self):
        with self._lock:
            data = dict(self._latest_data)
        data["enabled"] = self.switch.is_on()
        return data

    def update_config(self, config):
        """
        动态更新配置，结束当前跟踪后按新参数重建模块。

        新模块先全部构建完成再替换；参数非法时抛出 ValueError，当前跟踪和报警状态保持不变。
        """
        merged = dict(self.config)
        for key in _DEFAULTS:
            if key in config and config[key] is not None:
                merged[key] = config[key]
        merged = normalize_config(merged)
        modules = self._build_modules(merged)

        with self._pipeline_lock:
            self.sink.apply(self.session.close())
            self.eye_analyzer, self.session, self.sink, self.renderer = modules
            self.config = merged
            if "enabled" in config and config["enabled"] is not None:
                self.switch.set(merged["enabled"])


# 全局检测系统实例
system = WebDetectionSystem()


# ---- Flask 路由 ----

@app.route("/")
def index():
    return render_template("index.html")


@app.route("/api/start", methods=["POST"])
def api_start():
    ok = system.start()
    return jsonify({"success": ok, "message": "摄像头启动成功" if ok else "无法打开摄像头"})


@app.route("/api/stop", methods=["POST"])
def api_stop():
    system.stop()
    return jsonify({"success": True, "message": "检测已停止"})


@app.route("/api/enable", methods=["POST"])
def api_enable():
    data = request.get_json(silent=True) or {}
    try:
        enabled = system.set_enabled(data.get("enabled"))
    except ValueError as e:
        return jsonify({"success": False, "message": f"参数无效: {e}"}), 400
    return jsonify({"success": True, "enabled": enabled})


@app.route("/api/data")
def api_data():
    return jsonify(system.get_data())


@app.route("/api/config", methods=["GET"])
def api_get_config():
    return jsonify(system.config)


@app.route("/api/config", methods=["POST"])
def api_config():
    data = request.get_json(force=True)
    try:
        system.update_config(data)
    except (TypeError, ValueError) as e:
        return jsonify({"success": False, "message": f"配置无效: {e}"}), 400
    return jsonify({"success": True, "message": "配置已更新"})


@app.route("/api/logs")
def api_logs():
    since = request.args.get("since", 0, type=int)
    logs, total = system.get_logs(since)
    return jsonify({"logs": logs, "total": total})


@app.route("/video_feed")
def video_feed():
    def generate():
        while True:
            frame = system.get_frame()
            if frame is not None:
                yield (b"--frame\r\nContent-Type: image/jpeg\r\n\r\n" + frame + b"\r\n")
            time.sleep(0.03)
    return Response(generate(), mimetype="multipart/x-mixed-replace; boundary=frame")


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=False, threaded=True)
