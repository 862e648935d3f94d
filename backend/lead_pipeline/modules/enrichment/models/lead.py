"""
Lead ORM Model
SQLAlchemy model for the 'leads' table.

The table is created and migrated by the dashboard's database project.
This model maps the columns the enrichment pipeline reads and writes.
"""
from sqlalchemy import Column, Text, Boolean, Integer, Float, DateTime
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from lead_pipeline.shared.db.base import Base


class Lead(Base):
    """
    ORM Model for the leads table.

    Input columns are set once by upload. Enrichment columns are written
    progressively by the enrichment functions and by this service.
    """
    __tablename__ = "leads"

    # Primary Key (uuid rendered as text)
    id = Column(Text, primary_key=True)
    user_id = Column(Text, nullable=True)

    # ============================================
    # INPUT ATTRIBUTES (from upload)
    # ============================================
    full_name = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    company = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    state = Column(Text, nullable=True)
    zipcode = Column(Text, nullable=True)
    dma = Column(Text, nullable=True)
    category = Column(Text, nullable=True)
    mics_sector = Column(Text, nullable=True)
    mics_subsector = Column(Text, nullable=True)
    mics_segment = Column(Text, nullable=True)

    # ============================================
    # DOMAIN DISCOVERY & VALIDATION
    # ============================================
    domain = Column(Text, nullable=True)
    source_url = Column(Text, nullable=True)
    enrichment_source = Column(Text, nullable=True)
    enrichment_confidence = Column(Integer, nullable=True)
    enrichment_status = Column(Text, nullable=True)
    email_domain_validated = Column(Boolean, nullable=True)
    apollo_not_found = Column(Boolean, nullable=True)
    enriched_at = Column(DateTime(timezone=True), nullable=True)

    # ============================================
    # LOCATION & SCORING
    # ============================================
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    distance_miles = Column(Float, nullable=True)
    distance_confidence = Column(Text, nullable=True)
    domain_relevance_score = Column(Integer, nullable=True)
    domain_relevance_explanation = Column(Text, nullable=True)
    match_score = Column(Integer, nullable=True)
    match_score_source = Column(Text, nullable=True)

    # ============================================
    # SOCIAL PROFILES (validated: True/False, None = not evaluated)
    # ============================================
    facebook = Column(Text, nullable=True)
    facebook_confidence = Column(Integer, nullable=True)
    facebook_validated = Column(Boolean, nullable=True)
    linkedin = Column(Text, nullable=True)
    linkedin_confidence = Column(Integer, nullable=True)
    linkedin_validated = Column(Boolean, nullable=True)
    instagram = Column(Text, nullable=True)
    instagram_confidence = Column(Integer, nullable=True)
    instagram_validated = Column(Boolean, nullable=True)

    # ============================================
    # CONTACT
    # ============================================
    contact_linkedin = Column(Text, nullable=True)
    contact_facebook = Column(Text, nullable=True)
    contact_youtube = Column(Text, nullable=True)
    company_contacts = Column(JSONB, nullable=True, server_default='[]')

    # ============================================
    # COMPANY DETAILS
    # ============================================
    industry = Column(Text, nullable=True)
    size = Column(Text, nullable=True)
    annual_revenue = Column(Text, nullable=True)
    founded_date = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    products_services = Column(Text, nullable=True)
    news = Column(Text, nullable=True)

    # ============================================
    # DIAGNOSIS (when no domain could be found)
    # ============================================
    diagnosis_category = Column(Text, nullable=True)
    diagnosis_explanation = Column(Text, nullable=True)
    diagnosis_recommendation = Column(Text, nullable=True)
    diagnosis_confidence = Column(Text, nullable=True)

    # ============================================
    # AUDIT LOG (append-only)
    # ============================================
    enrichment_logs = Column(JSONB, nullable=True, server_default='[]')

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Lead(id={self.id}, company='{self.company}', domain='{self.domain}', match_score={self.match_score})>"
