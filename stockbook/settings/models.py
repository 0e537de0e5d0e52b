from datetime import datetime

from stockbook import db


class PrefixSetting(db.Model):
    """
    Numbering prefix override for one series (purchases, sales, …).
    Series without a row fall back to Config.SERIES_PREFIXES.
    """
    __tablename__ = 'prefix_settings'

    id         = db.Column(db.Integer, primary_key=True)
    series     = db.Column(db.String(30), unique=True, nullable=False)
    prefix     = db.Column(db.String(4), unique=True, nullable=False)
    handled_by = db.Column(db.String(40), nullable=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                           onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<PrefixSetting {self.series}={self.prefix}>"
