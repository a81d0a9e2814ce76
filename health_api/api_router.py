"""
File: health_api/api_router.py
Description: 根 API 路由聚合层

本模块负责：
1. 聚合所有业务领域的 Router (auth, users)
2. 统一设置路由前缀与标签 (Tags)
3. 为全部 API 路由挂载默认鉴权闸门 (optional 策略)
"""

from fastapi import APIRouter, Depends

from health_api.api.deps import AuthPolicy, auth_gate
from health_api.domains.auth.router import router as auth_router
from health_api.domains.users.router import router as users_router

# 默认策略为 optional：每个请求都尝试认证，未认证不拦截
# 需要登录的接口通过 CurrentPrincipal 升级为 required
api_router = APIRouter(dependencies=[Depends(auth_gate(AuthPolicy.OPTIONAL))])

# 1. 认证模块 (登录路径与账号资源共用 /users 前缀)
api_router.include_router(auth_router, prefix="/users", tags=["auth"])

# 2. 账号模块
api_router.include_router(users_router, prefix="/users", tags=["users"])
