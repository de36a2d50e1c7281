# -*- coding: utf-8 -*-

from datetime import datetime, timedelta
from functools import wraps
import logging
import math
import os

import click
from flask import Flask, jsonify, request, session
from flask_cors import CORS
from flask_jwt_extended import (
    JWTManager, create_access_token, decode_token, get_jwt, get_jwt_identity, jwt_required
)
from flask_mail import Mail, Message
from flask_socketio import SocketIO, emit, join_room

import firebase_admin
from firebase_admin import auth as firebase_auth, credentials, firestore

import config
from call_token_service import (
    build_room_payload, generate_channel_name, generate_token04
)
from errors import HopeLineError, NotFoundError, TokenError, ValidationError
from geo_service import (
    calculate_eta_minutes, extract_coordinates, format_eta, geo_to_svg,
    haversine_distance_km, is_address_in_state, sort_by_distance, states_for_point
)
from sos_service import (
    append_tracking_point, assign_driver, get_alert, list_alerts, mark_alert_read,
    send_sos, trip_distance_km, update_alert_status
)
from translation_service import translate_chat_message, translate_text
from user_approval_service import process_approved_users
from weather_service import WeatherService

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("hopeline")


# ------------------ FIREBASE INIT ------------------
def init_firebase():
    """Initialize Firebase Admin SDK once. Returns False when no credentials are configured."""
    if firebase_admin._apps:
        return True
    try:
        if config.FIREBASE_PRIVATE_KEY:
            cred = credentials.Certificate(
                {
                    "type": "service_account",
                    "project_id": config.FIREBASE_PROJECT_ID,
                    "client_email": config.FIREBASE_CLIENT_EMAIL,
                    "private_key": config.FIREBASE_PRIVATE_KEY.replace("\\n", "\n"),
                    "token_uri": "https://oauth2.googleapis.com/token",
                }
            )
        elif os.path.exists(config.FIREBASE_CREDENTIALS):
            cred = credentials.Certificate(config.FIREBASE_CREDENTIALS)
        else:
            logger.warning("[Firebase] No credentials configured; Firestore, Auth and FCM are disabled.")
            return False
        firebase_admin.initialize_app(cred)
        logger.info("[Firebase] Firebase Admin initialized.")
        return True
    except Exception as e:
        logger.error("[Firebase] Error initializing Firebase Admin SDK: %s", e)
        return False


init_firebase()

app = Flask(__name__)


# ------------------ CONFIG ------------------
app.config["SECRET_KEY"] = config.SECRET_KEY
app.config["JWT_SECRET_KEY"] = config.JWT_SECRET_KEY
app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(hours=config.JWT_ACCESS_TOKEN_HOURS)

app.config["MAIL_SERVER"] = config.MAIL_SERVER
app.config["MAIL_PORT"] = config.MAIL_PORT
app.config["MAIL_USE_TLS"] = True
app.config["MAIL_USERNAME"] = config.MAIL_USERNAME
app.config["MAIL_PASSWORD"] = config.MAIL_PASSWORD
app.config["MAIL_DEFAULT_SENDER"] = config.MAIL_USERNAME

app.config["ZEGO_APP_ID"] = config.ZEGO_APP_ID
app.config["ZEGO_SERVER_SECRET"] = config.ZEGO_SERVER_SECRET
app.config["CALL_TOKEN_TTL_SECONDS"] = config.CALL_TOKEN_TTL_SECONDS
app.config["DEFAULT_SPEED_KMH"] = config.DEFAULT_SPEED_KMH
app.config["APPROVAL_WORKER_ENABLED"] = config.APPROVAL_WORKER_ENABLED
app.config["APPROVAL_POLL_SECONDS"] = config.APPROVAL_POLL_SECONDS

# Tests put an in-memory client here; otherwise it is created lazily.
app.config["FIRESTORE_CLIENT"] = None

CORS(app, resources={r"/*": {"origins": config.CORS_ORIGINS}}, supports_credentials=True)
jwt = JWTManager(app)
mail = Mail(app)

# Socket.IO for live driver positions and new-alert broadcasts
socketio = SocketIO(
    app,
    cors_allowed_origins=config.CORS_ORIGINS,
    async_mode=config.SOCKETIO_ASYNC_MODE,
    ping_timeout=60,
    ping_interval=25,
)

ADMIN_ROLES = ("admin", "super admin")
DRIVER_ROLES = ("driver", "rider", "responder", "pilot")
ADMINS_ROOM = "admins"


def get_db():
    client = app.config.get("FIRESTORE_CLIENT")
    if client is None:
        if not init_firebase():
            raise HopeLineError("Firestore is not configured on this server.", status_code=503)
        client = firestore.client()
        app.config["FIRESTORE_CLIENT"] = client
    return client


@app.errorhandler(HopeLineError)
def handle_hopeline_error(e):
    return jsonify(e.to_dict()), e.status_code


# ------------------ AUTH HELPERS ------------------
def current_role():
    return (get_jwt().get("role") or "user").lower()


def role_required(*roles):
    """jwt_required plus a check on the `role` claim."""
    def decorator(view_func):
        @wraps(view_func)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if roles and current_role() not in roles:
                return jsonify({"error": "Forbidden"}), 403
            return view_func(*args, **kwargs)
        return wrapper
    return decorator


def json_body():
    """The request JSON object, {} when there is no body."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("JSON object required")
    return data


def create_jwt_for_profile(uid, profile):
    return create_access_token(
        identity=uid,
        additional_claims={
            "role": (profile.get("role") or "user").lower(),
            "email": profile.get("email"),
        },
    )


def parse_lat_lng(source, lat_key="lat", lng_key="lng", required=True):
    try:
        lat = float(source.get(lat_key))
        lng = float(source.get(lng_key))
    except (TypeError, ValueError):
        if required:
            raise ValidationError(f"{lat_key} and {lng_key} are required")
        return None, None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValidationError(f"{lat_key}/{lng_key} out of range")
    return lat, lng


def docs_to_list(query):
    rows = []
    for snap in query.stream():
        data = snap.to_dict() or {}
        data["id"] = snap.id
        rows.append(data)
    return rows


def record_user_location(uid, role, lat, lng, accuracy=None):
    """Store a live position on the user's profile and fan it out to admins for drivers."""
    update = {
        "latitude": lat,
        "longitude": lng,
        "locationTimestamp": int(datetime.utcnow().timestamp() * 1000),
        "trackingStatus": "active",
        "lastUpdate": datetime.utcnow(),
    }
    if accuracy is not None:
        update["locationAccuracy"] = accuracy
    get_db().collection("users").document(uid).set(update, merge=True)

    if role in DRIVER_ROLES:
        payload = {"driverId": uid, "lat": lat, "lng": lng, "accuracy": accuracy}
        socketio.emit("driver_location", payload, to=ADMINS_ROOM)
    return update


# ------------------ MAIL ------------------
def send_welcome_email(uid, email):
    """Mail new staff a link to set their first password."""
    if not app.config.get("MAIL_USERNAME"):
        logger.info("[MAIL] Mail not configured, skipping welcome email for %s", email)
        return False

    link = firebase_auth.generate_password_reset_link(email)
    msg = Message(
        subject="Your HopeLine staff account",
        recipients=[email],
        html=(
            "<p>Hello,</p>"
            "<p>Your HopeLine staff account has been approved. "
            f'<a href="{link}">Set your password</a> to sign in.</p>'
        ),
    )
    mail.send(msg)
    logger.info("[MAIL] Welcome email sent to %s (uid %s)", email, uid)
    return True


# ------------------ APPROVAL JOB ------------------
def run_approval_job():
    if not firebase_admin._apps:
        raise HopeLineError("Firebase Admin SDK not initialized. Check server logs for details.")
    return process_approved_users(get_db(), on_created=send_welcome_email)


def approval_worker():
    while True:
        with app.app_context():
            try:
                run_approval_job()
            except Exception as e:
                logger.error("[Approvals] Error in approval worker: %s", e)
        socketio.sleep(app.config["APPROVAL_POLL_SECONDS"])


def start_approval_worker():
    if app.config.get("APPROVAL_WORKER_ENABLED"):
        logger.info("[Approvals] Starting approval worker every %ss", app.config["APPROVAL_POLL_SECONDS"])
        socketio.start_background_task(approval_worker)


@app.cli.command("process-approved-users")
def process_approved_users_command():
    """Create accounts for approved staff requests (run from cron)."""
    result = run_approval_job()
    click.echo(f"processed={len(result.processed)} failed={len(result.failed)}")


# ------------------ ROUTES ------------------
@app.route("/health")
def health():
    return jsonify({"ok": True, "firebase": bool(firebase_admin._apps)})


@app.route("/auth/firebase", methods=["POST"])
def auth_firebase():
    """Exchange a Firebase ID token for an API JWT carrying the user's role."""
    data = json_body()
    id_token = data.get("idToken")
    if not id_token:
        return jsonify({"error": "idToken required"}), 400

    try:
        decoded = firebase_auth.verify_id_token(id_token)
    except Exception as e:
        logger.warning("[AUTH] Firebase verify_id_token error: %s", e)
        return jsonify({"error": "Invalid Firebase token"}), 401

    uid = decoded["uid"]
    snap = get_db().collection("users").document(uid).get()
    profile = (snap.to_dict() or {}) if snap.exists else {}
    if profile.get("accountStatus") in ("suspended", "deleted"):
        return jsonify({"error": "Account is not active"}), 403

    profile.setdefault("email", decoded.get("email"))
    return jsonify(
        {
            "access_token": create_jwt_for_profile(uid, profile),
            "uid": uid,
            "role": (profile.get("role") or "user").lower(),
        }
    )


@app.route("/api/me")
@jwt_required()
def api_me():
    uid = get_jwt_identity()
    snap = get_db().collection("users").document(uid).get()
    if not snap.exists:
        raise NotFoundError("Profile not found")
    profile = snap.to_dict() or {}
    profile.pop("fcmToken", None)
    profile["id"] = uid
    return jsonify(profile)


@app.route("/api/fcm/register", methods=["POST"])
@jwt_required()
def api_register_fcm():
    data = json_body()
    token = (data.get("token") or "").strip()
    if not token:
        return jsonify({"error": "token required"}), 400

    get_db().collection("users").document(get_jwt_identity()).set({"fcmToken": token}, merge=True)
    return jsonify({"ok": True})


@app.route("/api/user/location", methods=["POST"])
@jwt_required()
def api_user_location():
    data = json_body()
    lat, lng = parse_lat_lng(data)
    accuracy = data.get("accuracy")
    record_user_location(get_jwt_identity(), current_role(), lat, lng, accuracy)
    return jsonify({"ok": True})


# ------------------ SOS ------------------
@app.route("/api/sos", methods=["POST"])
@jwt_required(optional=True)
def api_send_sos():
    payload = json_body()
    uid = get_jwt_identity()
    if uid:
        payload["userId"] = uid
        payload.setdefault("userEmail", get_jwt().get("email"))
    else:
        # anonymous SOS: never attribute it to someone else's account
        payload.pop("userId", None)

    result = send_sos(get_db(), payload)
    if not result["success"]:
        return jsonify(result), 500

    socketio.emit(
        "sos_alert",
        {
            "alertId": result["alertId"],
            "emergencyType": payload.get("emergencyType"),
            "location": payload.get("location"),
        },
        to=ADMINS_ROOM,
    )
    return jsonify(result), 201


@app.route("/api/sos", methods=["GET"])
@role_required(*ADMIN_ROLES)
def api_list_sos():
    state = request.args.get("state") or None
    status = request.args.get("status") or None
    return jsonify({"alerts": list_alerts(get_db(), state=state, status=status)})


@app.route("/api/sos/<alert_id>/assign", methods=["POST"])
@role_required(*ADMIN_ROLES)
def api_assign_driver(alert_id):
    data = json_body()
    driver_id = data.get("driverId")
    if not driver_id:
        return jsonify({"error": "driverId required"}), 400
    alert = assign_driver(get_db(), alert_id, driver_id)
    return jsonify({"ok": True, "assignedTeam": alert["assignedTeam"], "status": alert["status"]})


@app.route("/api/sos/<alert_id>/status", methods=["POST"])
@role_required(*(ADMIN_ROLES + DRIVER_ROLES))
def api_update_sos_status(alert_id):
    data = json_body()
    db = get_db()

    if current_role() in DRIVER_ROLES:
        alert = get_alert(db, alert_id)
        if (alert.get("assignedTeam") or {}).get("driverId") != get_jwt_identity():
            return jsonify({"error": "Task is not assigned to you"}), 403

    changes = update_alert_status(db, alert_id, data.get("status"))
    return jsonify({"ok": True, "status": changes["status"]})


@app.route("/api/sos/<alert_id>/read", methods=["POST"])
@role_required(*ADMIN_ROLES)
def api_mark_sos_read(alert_id):
    mark_alert_read(get_db(), alert_id, super_admin=current_role() == "super admin")
    return jsonify({"ok": True})


@app.route("/api/sos/<alert_id>/tracking", methods=["POST"])
@role_required(*DRIVER_ROLES)
def api_sos_tracking(alert_id):
    data = json_body()
    lat, lng = parse_lat_lng(data)
    db = get_db()

    alert = get_alert(db, alert_id)
    if (alert.get("assignedTeam") or {}).get("driverId") != get_jwt_identity():
        return jsonify({"error": "Task is not assigned to you"}), 403

    count = append_tracking_point(db, alert_id, lat, lng, data.get("timestamp"))
    return jsonify({"ok": True, "points": count})


@app.route("/api/sos/<alert_id>/eta")
@jwt_required()
def api_sos_eta(alert_id):
    """
    ETA from the assigned driver (or an explicit ?lat&lng origin) to the alert.
    """
    db = get_db()
    alert = get_alert(db, alert_id)
    destination = extract_coordinates(alert.get("location"))
    if destination is None:
        return jsonify({"error": "Alert has no coordinates"}), 400

    origin_lat, origin_lng = parse_lat_lng(request.args, required=False)
    if origin_lat is None:
        driver_id = (alert.get("assignedTeam") or {}).get("driverId")
        if not driver_id:
            return jsonify({"error": "No driver assigned"}), 400
        snap = db.collection("users").document(driver_id).get()
        origin = extract_coordinates(snap.to_dict() if snap.exists else None)
        if origin is None:
            return jsonify({"error": "Driver location unknown"}), 409
        origin_lat, origin_lng = origin

    try:
        speed = float(request.args.get("speed_kmh", app.config["DEFAULT_SPEED_KMH"]))
    except ValueError:
        raise ValidationError("speed_kmh must be a number")
    if not math.isfinite(speed) or speed <= 0:
        return jsonify({"error": "speed_kmh must be a positive number"}), 400

    distance = haversine_distance_km(origin_lat, origin_lng, destination[0], destination[1])
    minutes = calculate_eta_minutes(distance, speed)
    coordinates = (alert.get("trackingData") or {}).get("coordinates") or []
    return jsonify(
        {
            "distance_km": round(distance, 2),
            "eta_minutes": minutes,
            "eta": format_eta(minutes),
            "speed_kmh": speed,
            "travelled_km": round(trip_distance_km(coordinates), 2),
        }
    )


# ------------------ WEATHER / TRANSLATION ------------------
@app.route("/api/weather")
def api_weather():
    lat, lng = parse_lat_lng(request.args)
    return jsonify(WeatherService.get_weather(lat, lng))


@app.route("/api/translate", methods=["POST"])
def api_translate():
    data = json_body()
    text = data.get("text")
    target = data.get("targetLanguage")
    if not text or not target:
        return jsonify({"error": "Missing text or targetLanguage"}), 400

    translated = translate_text(text, target, data.get("sourceLanguage") or "en")
    return jsonify({"translatedText": translated})


@app.route("/api/chats/<chat_id>/messages/<message_id>/translate", methods=["POST"])
@jwt_required()
def api_translate_chat_message(chat_id, message_id):
    db = get_db()
    ref = db.collection("chats").document(chat_id).collection("messages").document(message_id)
    snap = ref.get()
    if not snap.exists:
        raise NotFoundError("Message not found")

    message = snap.to_dict() or {}
    uid = get_jwt_identity()
    if uid not in (message.get("senderId"), message.get("receiverId")) and current_role() not in ADMIN_ROLES:
        return jsonify({"error": "Forbidden"}), 403

    update = translate_chat_message(db, message)
    if update:
        update["translationTimestamp"] = datetime.utcnow()
        ref.update(update)
    return jsonify({"ok": True, "updated": sorted(k for k in update if k != "translationTimestamp")})


# ------------------ CALLS ------------------
@app.route("/api/call-token", methods=["POST"])
@jwt_required()
def api_call_token():
    data = json_body()
    channel_name = data.get("channelName")
    if not channel_name and data.get("peerId"):
        channel_name = generate_channel_name(get_jwt_identity(), data["peerId"])
    uid = data.get("uid")

    if not channel_name or uid is None:
        return jsonify({"error": "Missing required parameters: channelName and uid"}), 400

    try:
        token = generate_token04(
            app.config["ZEGO_APP_ID"],
            str(uid),
            app.config["ZEGO_SERVER_SECRET"],
            app.config["CALL_TOKEN_TTL_SECONDS"],
            build_room_payload(channel_name, data.get("role", "publisher")),
        )
    except TokenError as e:
        logger.error("[CALL] Error generating call token: %s (code %s)", e.message, e.code)
        return jsonify({"error": "Failed to generate token"}), 500

    return jsonify({"token": token, "channelName": channel_name})


# ------------------ SHELTERS / CONTACTS / GEO ------------------
@app.route("/api/shelters/nearby")
def api_shelters_nearby():
    lat, lng = parse_lat_lng(request.args, required=False)
    state = request.args.get("state")
    term = (request.args.get("q") or "").strip().lower()

    shelters = docs_to_list(get_db().collection("shelters"))
    if state and state != "all":
        shelters = [s for s in shelters if is_address_in_state(s.get("location"), state) or s.get("state") == state]
    if term:
        shelters = [
            s for s in shelters
            if term in (s.get("name") or "").lower()
            or term in (s.get("organization") or "").lower()
            or term in (s.get("location") or "").lower()
        ]
    if lat is not None:
        shelters = sort_by_distance(shelters, lat, lng)
    return jsonify({"shelters": shelters})


@app.route("/api/ussd-codes")
def api_ussd_codes():
    state = request.args.get("state")
    codes = docs_to_list(get_db().collection("ussdCodes"))
    if state:
        # codes without a state are national numbers
        codes = [c for c in codes if not c.get("state") or c.get("state") == state]
    codes.sort(key=lambda c: (c.get("name") or "").lower())
    return jsonify({"ussdCodes": codes})


@app.route("/api/states/classify")
def api_classify_point():
    lat, lng = parse_lat_lng(request.args)
    x, y = geo_to_svg(lat, lng)
    return jsonify({"states": states_for_point(lat, lng), "svg": {"x": round(x, 2), "y": round(y, 2)}})


from admin_routes import admin_bp  # noqa: E402

app.register_blueprint(admin_bp)


# ------------------ SOCKET.IO ------------------
@socketio.on("connect")
def on_connect(auth=None):
    token = (auth or {}).get("token")
    if not token:
        return False
    try:
        decoded = decode_token(token)
    except Exception as e:
        logger.info("[SOCKETIO] Rejected connection: %s", e)
        return False

    session["uid"] = decoded["sub"]
    session["role"] = (decoded.get("role") or "user").lower()
    join_room(f"user_{session['uid']}")
    logger.info("[SOCKETIO] User %s connected", session["uid"])


@socketio.on("join_admins")
def on_join_admins(data=None):
    if session.get("role") not in ADMIN_ROLES:
        emit("request_error", {"error": "Forbidden"})
        return
    join_room(ADMINS_ROOM)
    emit("joined", {"room": ADMINS_ROOM})


@socketio.on("driver_location")
def on_driver_location(data):
    uid = session.get("uid")
    if not uid or session.get("role") not in DRIVER_ROLES:
        emit("request_error", {"error": "Forbidden"})
        return
    try:
        lat, lng = parse_lat_lng(data or {})
    except ValidationError as e:
        emit("request_error", e.to_dict())
        return
    record_user_location(uid, session["role"], lat, lng, (data or {}).get("accuracy"))


if __name__ == "__main__":
    start_approval_worker()
    socketio.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=os.getenv("FLASK_DEBUG") == "1")
