from .client import RestStatusApi

__all__ = ['RestStatusApi']
