"""
StreamPulse - Session History Models
"""
from typing import Optional, List
from sqlalchemy import String, Integer, BigInteger, Float, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from streampulse.core.database import Base


class StreamSession(Base):
    __tablename__ = "stream_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    start_time: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)  # epoch ms
    end_time: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    # Summary, filled in when the session ends
    avg_cpu: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    avg_gpu: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total_dropped_frames: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    peak_bitrate: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    quality_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    samples: Mapped[List["MetricsSample"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan"
    )

    @property
    def is_completed(self) -> bool:
        return self.end_time is not None

    def __repr__(self):
        return f"<StreamSession {self.id}>"


class MetricsSample(Base):
    __tablename__ = "metrics_samples"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("stream_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)  # epoch ms

    # System snapshot
    cpu_usage: Mapped[float] = mapped_column(Float, nullable=False)
    memory_used: Mapped[int] = mapped_column(BigInteger, nullable=False)
    memory_total: Mapped[int] = mapped_column(BigInteger, nullable=False)
    gpu_usage: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    gpu_memory_used: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    network_upload: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    network_download: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # Capture software status
    streaming: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recording: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    fps: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    render_dropped_frames: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    output_dropped_frames: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    stream_bitrate: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    session: Mapped["StreamSession"] = relationship(back_populates="samples")

    def __repr__(self):
        return f"<MetricsSample {self.session_id}@{self.timestamp}>"
