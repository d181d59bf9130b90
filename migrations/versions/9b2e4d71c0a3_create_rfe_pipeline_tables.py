"""create rfe pipeline tables

Revision ID: 9b2e4d71c0a3
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
import pgvector.sqlalchemy


# revision identifiers, used by Alembic.
revision: str = '9b2e4d71c0a3'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EMBEDDING_DIMENSIONS = 1536

AUDIT_EVENT_VALUES = (
    'ANALYSIS_COMPLETED', 'CASE_TRANSITIONED',
    'DRAFT_GENERATED', 'DRAFT_EDITED', 'DRAFT_APPROVED',
    'DRAFT_LOCKED', 'DRAFT_UNLOCKED',
)

ENUM_TYPES = (
    'casestatus', 'documenttype', 'processingstatus', 'sectiontype', 'evidencepriority',
    'draftstatus', 'knowledgedoctype', 'chunksourcetype', 'auditeventtype',
)


def _base_columns():
    return [
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def _tenant_fk():
    return sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False)


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        'tenants',
        *_base_columns(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('domain', sa.String(), nullable=True, unique=True),
    )

    op.create_table(
        'users',
        *_base_columns(),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('first_name', sa.String(), nullable=True),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_admin', sa.Boolean(), nullable=False),
        _tenant_fk(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_tenant_id', 'users', ['tenant_id'])

    op.create_table(
        'rfe_cases',
        *_base_columns(),
        _tenant_fk(),
        sa.Column('created_by_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('case_number', sa.String(), nullable=False),
        sa.Column('petitioner_name', sa.String(), nullable=True),
        sa.Column('beneficiary_name', sa.String(), nullable=True),
        sa.Column('visa_type', sa.String(), nullable=True),
        sa.Column('rfe_deadline', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.Enum('DRAFT', 'ANALYZING', 'REVIEW', 'RESPONDED', 'ARCHIVED',
                                    name='casestatus'), nullable=False),
        sa.Column('progress', postgresql.JSONB(), nullable=False),
    )
    op.create_index('ix_rfe_cases_tenant_id', 'rfe_cases', ['tenant_id'])

    op.create_table(
        'rfe_documents',
        *_base_columns(),
        _tenant_fk(),
        sa.Column('case_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('rfe_cases.id', ondelete='CASCADE'), nullable=False),
        sa.Column('filename', sa.String(), nullable=False),
        sa.Column('content_type', sa.String(), nullable=False),
        sa.Column('document_type', sa.Enum('RFE_NOTICE', 'SUPPORTING_EVIDENCE', 'EXHIBIT',
                                           name='documenttype'), nullable=False),
        sa.Column('file_hash', sa.String(length=64), nullable=True),
        sa.Column('content', sa.LargeBinary(), nullable=False),
        sa.Column('extracted_text', sa.Text(), nullable=True),
        sa.Column('processing_status', sa.Enum('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED',
                                               name='processingstatus'), nullable=False),
        sa.Column('processing_metadata', postgresql.JSONB(), nullable=False),
    )
    op.create_index('ix_rfe_documents_tenant_id', 'rfe_documents', ['tenant_id'])
    op.create_index('ix_rfe_documents_case_id', 'rfe_documents', ['case_id'])

    op.create_table(
        'rfe_sections',
        *_base_columns(),
        _tenant_fk(),
        sa.Column('case_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('rfe_cases.id', ondelete='CASCADE'), nullable=False),
        sa.Column('document_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('rfe_documents.id', ondelete='SET NULL'), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('section_type', sa.Enum('SPECIALTY_OCCUPATION', 'BENEFICIARY_QUALIFICATIONS',
                                          'EMPLOYER_EMPLOYEE', 'GENERAL', name='sectiontype'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('original_text', sa.Text(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('cfr_reference', sa.String(), nullable=True),
        sa.Column('confidence_score', sa.Float(), nullable=False),
        sa.Column('ai_analysis', postgresql.JSONB(), nullable=False),
        sa.UniqueConstraint('case_id', 'position', name='uq_rfe_sections_case_position'),
    )
    op.create_index('ix_rfe_sections_tenant_id', 'rfe_sections', ['tenant_id'])
    op.create_index('ix_rfe_sections_case_id', 'rfe_sections', ['case_id'])

    op.create_table(
        'evidence_checklists',
        *_base_columns(),
        _tenant_fk(),
        sa.Column('case_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('rfe_cases.id', ondelete='CASCADE'), nullable=False),
        sa.Column('issue_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('rfe_sections.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('priority', sa.Enum('REQUIRED', 'RECOMMENDED', 'OPTIONAL', name='evidencepriority'),
                  nullable=False),
        sa.Column('document_name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('guidance', sa.Text(), nullable=True),
        sa.Column('is_collected', sa.Boolean(), nullable=False),
    )
    op.create_index('ix_evidence_checklists_tenant_id', 'evidence_checklists', ['tenant_id'])
    op.create_index('ix_evidence_checklists_case_id', 'evidence_checklists', ['case_id'])
    op.create_index('ix_evidence_checklists_issue_id', 'evidence_checklists', ['issue_id'])

    op.create_table(
        'draft_responses',
        *_base_columns(),
        _tenant_fk(),
        sa.Column('case_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('rfe_cases.id', ondelete='CASCADE'), nullable=False),
        sa.Column('issue_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('rfe_sections.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('status', sa.Enum('DRAFT', 'EDITING', 'REVIEWED', 'APPROVED', name='draftstatus'),
                  nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('ai_generated_content', sa.Text(), nullable=True),
        sa.Column('edited_content', sa.Text(), nullable=True),
        sa.Column('final_content', sa.Text(), nullable=True),
        sa.Column('attorney_feedback', sa.Text(), nullable=True),
        sa.Column('locked_by_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('locked_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('issue_id', 'version', name='uq_draft_responses_issue_version'),
    )
    op.create_index('ix_draft_responses_tenant_id', 'draft_responses', ['tenant_id'])
    op.create_index('ix_draft_responses_case_id', 'draft_responses', ['case_id'])
    op.create_index('ix_draft_responses_issue_id', 'draft_responses', ['issue_id'])

    op.create_table(
        'knowledge_docs',
        *_base_columns(),
        _tenant_fk(),
        sa.Column('uploaded_by_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('doc_type', sa.Enum('TEMPLATE', 'SAMPLE_RESPONSE', 'REGULATION', 'FIRM_KNOWLEDGE',
                                      name='knowledgedoctype'), nullable=False),
        sa.Column('visa_type', sa.String(), nullable=True),
        sa.Column('rfe_category', sa.String(), nullable=True),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('file_content', sa.LargeBinary(), nullable=True),
        sa.Column('file_content_type', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
    )
    op.create_index('ix_knowledge_docs_tenant_id', 'knowledge_docs', ['tenant_id'])

    op.create_table(
        'knowledge_chunks',
        *_base_columns(),
        _tenant_fk(),
        sa.Column('source_type', sa.Enum('KNOWLEDGE_DOC', 'RFE_DOCUMENT', name='chunksourcetype'),
                  nullable=False),
        sa.Column('source_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('case_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('chunk_index', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('embedding', pgvector.sqlalchemy.Vector(dim=EMBEDDING_DIMENSIONS), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=False),
    )
    op.create_index('ix_knowledge_chunks_tenant_id', 'knowledge_chunks', ['tenant_id'])
    op.create_index('ix_knowledge_chunks_source_id', 'knowledge_chunks', ['source_id'])
    op.create_index('ix_knowledge_chunks_case_id', 'knowledge_chunks', ['case_id'])
    op.execute(
        "CREATE INDEX ix_knowledge_chunks_embedding ON knowledge_chunks "
        "USING hnsw (embedding vector_cosine_ops)"
    )

    op.create_table(
        'audit_events',
        *_base_columns(),
        _tenant_fk(),
        sa.Column('case_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('rfe_cases.id', ondelete='CASCADE'), nullable=True),
        sa.Column('event_type', sa.Enum(*AUDIT_EVENT_VALUES, name='auditeventtype'), nullable=False),
        sa.Column('actor_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('artifact_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('artifact_type', sa.String(), nullable=True),
        sa.Column('detail', postgresql.JSONB(), nullable=True),
    )
    op.create_index('ix_audit_events_tenant_id', 'audit_events', ['tenant_id'])
    op.create_index('ix_audit_events_case_id', 'audit_events', ['case_id'])


def downgrade() -> None:
    for table in (
        'audit_events', 'knowledge_chunks', 'knowledge_docs', 'draft_responses',
        'evidence_checklists', 'rfe_sections', 'rfe_documents', 'rfe_cases', 'users', 'tenants',
    ):
        op.drop_table(table)
    for enum_type in ENUM_TYPES:
        op.execute(f"DROP TYPE IF EXISTS {enum_type}")
