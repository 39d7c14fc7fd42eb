from flask import Blueprint, jsonify

from .models import Attendance, ParentChildRelation, QrCode
from .services.errors import Forbidden, NotFound
from .services.sessions import require_principal

bp = Blueprint('attendance', __name__)


def _rows(**filters):
    q = Attendance.query.filter_by(**filters).order_by(Attendance.scanned_at, Attendance.id)
    return [a.to_dict() for a in q.all()]


@bp.get('/class/<class_id>')
def by_class(class_id: str):
    principal = require_principal()
    tokens = QrCode.query.filter_by(target_type='CLASS', target_id=class_id)
    if tokens.first() is None:
        raise NotFound('class not found')
    if tokens.filter_by(created_by=principal.user_id).first() is None:
        raise Forbidden('not the organizer of this class')
    return jsonify({'success': True, 'classId': class_id, 'attendance': _rows(class_id=class_id)})


@bp.get('/student/<student_id>')
def by_student(student_id: str):
    principal = require_principal()
    if principal.user_id != student_id:
        edge = ParentChildRelation.query.filter_by(parent_user_id=principal.user_id,
                                                   child_user_id=student_id).first()
        if edge is None:
            raise Forbidden('not your attendance record')
    return jsonify({'success': True, 'studentId': student_id, 'attendance': _rows(student_id=student_id)})
