from flask import Blueprint, Flask, jsonify, request
from flask_cors import CORS
from pydantic import ValidationError
from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
import logging
from datetime import datetime

from analytics import report
from config import Config
from dates import utcnow
from models import Task, db
from schemas import TaskCreate, TaskPatch, TaskRecord, validation_messages

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__, url_prefix='/api')


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Configure logging
    logging.basicConfig(level=app.config['LOG_LEVEL'])

    CORS(app, resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}})
    db.init_app(app)
    app.register_blueprint(api)

    # Initialize database
    with app.app_context():
        db.create_all()

    return app


# Helpers
def error_response(message, status, **extra):
    return jsonify({"success": False, "message": message, **extra}), status


def task_response(task, status=200):
    return jsonify({"success": True, "task": task.to_dict()}), status


def parse_day(value):
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()


def request_document():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def ordered_tasks(*criteria):
    query = db.select(Task)
    if criteria:
        query = query.where(*criteria)
    query = query.order_by(Task.date, Task.start_time, Task.id)
    return db.session.execute(query).scalars().all()


# Routes
@api.route('/health', methods=['GET'])
def health():
    return jsonify({"status": "ok", "message": "Service is running"})


@api.route('/tasks', methods=['GET'])
def get_tasks():
    date_from = request.args.get('from')
    date_to = request.args.get('to')
    status = request.args.get('status')

    criteria = []
    if status and status != 'all':
        criteria.append(Task.status == status)

    if date_from and date_to:
        try:
            start, end = parse_day(date_from), parse_day(date_to)
        except ValueError:
            return error_response("from and to must be in YYYY-MM-DD format", 400)
        criteria.append(or_(
            # single-day task inside the window; a full range overrides date
            and_(
                Task.date >= start,
                Task.date <= end,
                or_(Task.range_start.is_(None), Task.range_end.is_(None)),
            ),
            # ranged task overlapping the window
            and_(Task.range_start <= end, Task.range_end >= start),
        ))

    try:
        tasks = ordered_tasks(*criteria)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching tasks: {e}")
        return error_response("Error fetching tasks", 500)

    return jsonify({
        "success": True,
        "from": date_from,
        "to": date_to,
        "tasks": [task.to_dict() for task in tasks]
    })


@api.route('/tasks/all', methods=['GET'])
def get_all_tasks():
    try:
        tasks = ordered_tasks()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching all tasks: {e}")
        return error_response("Error fetching all tasks", 500)

    return jsonify({
        "success": True,
        "tasks": [task.to_dict() for task in tasks]
    })


@api.route('/tasks/<int:task_id>', methods=['GET'])
def get_task(task_id):
    task = db.session.get(Task, task_id)
    if not task:
        return error_response("Task not found", 404)
    return task_response(task)


@api.route('/tasks', methods=['POST'])
def create_task():
    data = request_document()
    if data is None:
        return error_response("Task data is required", 400)

    try:
        document = TaskCreate.model_validate(data)
    except ValidationError as e:
        return error_response("Invalid task data", 400, errors=validation_messages(e))

    try:
        task = Task()
        task.apply(document.column_values())
        db.session.add(task)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error creating task: {e}")
        return error_response(f"Error creating task: {str(e)}", 500)

    logger.debug(f"Created task {task.id}")
    return task_response(task, 201)


@api.route('/tasks/<int:task_id>', methods=['PUT'])
def update_task(task_id):
    data = request_document()
    if data is None:
        return error_response("Task data is required", 400)

    try:
        document = TaskCreate.model_validate(data)
    except ValidationError as e:
        return error_response("Invalid task data", 400, errors=validation_messages(e))

    task = db.session.get(Task, task_id)
    if not task:
        return error_response("Task not found", 404)

    try:
        # Full document: anything omitted goes back to its default
        task.apply(document.column_values())
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error updating task {task_id}: {e}")
        return error_response(f"Error updating task: {str(e)}", 500)

    return task_response(task)


@api.route('/tasks/<int:task_id>', methods=['PATCH'])
def patch_task(task_id):
    data = request_document()
    if data is None:
        return error_response("Task data is required", 400)

    try:
        patch = TaskPatch.model_validate(data)
    except ValidationError as e:
        return error_response("Invalid task data", 400, errors=validation_messages(e))

    task = db.session.get(Task, task_id)
    if not task:
        return error_response("Task not found", 404)

    try:
        task.apply(patch.column_values())
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error patching task {task_id}: {e}")
        return error_response(f"Error updating task: {str(e)}", 500)

    return task_response(task)


@api.route('/tasks/<int:task_id>/complete', methods=['POST'])
def complete_task(task_id):
    task = db.session.get(Task, task_id)
    if not task:
        return error_response("Task not found", 404)

    try:
        # Toggle completion status
        if task.status == 'done':
            task.status = 'pending'
            task.completed_at = None
        else:
            task.status = 'done'
            task.completed_at = utcnow()
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error updating task {task_id}: {e}")
        return error_response(f"Error updating task: {str(e)}", 500)

    return jsonify({
        "success": True,
        "message": "Task status updated",
        "task": task.to_dict()
    })


@api.route('/tasks/<int:task_id>', methods=['DELETE'])
def delete_task(task_id):
    task = db.session.get(Task, task_id)
    if not task:
        return error_response("Task not found", 404)

    try:
        db.session.delete(task)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error deleting task {task_id}: {e}")
        return error_response(f"Error deleting task: {str(e)}", 500)

    return '', 204


@api.route('/analytics', methods=['GET'])
def get_analytics():
    try:
        tasks = ordered_tasks()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching tasks for analytics: {e}")
        return error_response("Error computing analytics", 500)

    records = [TaskRecord.model_validate(task.to_dict()) for task in tasks]
    return jsonify({
        "success": True,
        "analytics": report(records)
    })


if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=8080, debug=True)
