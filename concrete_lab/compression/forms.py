"""Compression test forms.

Validate a ``FormDraft`` before it is submitted. The forms are bound to
the draft object (``obj=``), not to request form data, since the draft is
assembled field by field through the JSON endpoints.
"""
from flask import current_app
from flask_wtf import FlaskForm
from wtforms import (Form, StringField, FloatField, SelectField, TextAreaField,
                     IntegerField, FieldList, FormField)
from wtforms.validators import DataRequired, ValidationError

from concrete_lab.models import DEFECT_CODES, DEFECT_OTHER, FRACTURE_TYPES
from concrete_lab.services.date_normalizer import to_iso


def _choices(values):
    return [('', '-')] + [(value, value) for value in values]


def display_date(form, field):
    """Empty, or a complete 'DD/MM/YY' date."""
    if field.data and to_iso(field.data) is None:
        raise ValidationError('Date must be DD/MM/YY')


class CompressionItemForm(Form):
    """One grid row. Personnel choices come from the app config."""
    sequence = IntegerField('Item')
    sample_code = StringField('Codigo LEM')
    scheduled_date = StringField('Fecha programada', validators=[display_date])
    test_date = StringField('Fecha ensayo', validators=[display_date])
    test_time = StringField('Hora ensayo')
    max_load = FloatField('Carga maxima (kN)')
    fracture_type = SelectField('Tipo fractura', choices=_choices(FRACTURE_TYPES))
    defect_code = SelectField('Defectos', choices=_choices(DEFECT_CODES))
    defect_custom = StringField('Defecto (otro)')
    performed_by = SelectField('Realizado')
    reviewed_by = SelectField('Revisado')
    review_date = StringField('Fecha revisado', validators=[display_date])
    approved_by = SelectField('Aprobado')
    approval_date = StringField('Fecha aprobado', validators=[display_date])

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.performed_by.choices = _choices(current_app.config['PERFORMED_BY_OPTIONS'])
        self.reviewed_by.choices = _choices(current_app.config['REVIEWED_BY_OPTIONS'])
        self.approved_by.choices = _choices(current_app.config['APPROVED_BY_OPTIONS'])

    def validate_max_load(self, field):
        if field.data is not None and field.data < 0:
            raise ValidationError('Maximum load cannot be negative')

    def validate_defect_custom(self, field):
        if self.defect_code.data == DEFECT_OTHER and not (field.data or '').strip():
            raise ValidationError('Describe the defect')


class CompressionForm(FlaskForm):
    """Header plus test rows of a compression record."""
    reception_code = StringField('N° Recepcion', validators=[DataRequired('Required')])
    work_order_code = StringField('N° OT')
    equipment_code = StringField('Codigo equipo')
    other = StringField('Otros')
    notes = TextAreaField('Nota')
    items = FieldList(FormField(CompressionItemForm), min_entries=1)
